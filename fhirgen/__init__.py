"""fhirgen: generate typed models from FHIR schema packages."""

__version__ = "0.1.0"

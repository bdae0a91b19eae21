"""
Shared test fixtures and configuration.
"""

import logging
from pathlib import Path
from typing import Optional

import pytest

from fhirgen.codegen.core.ir import IR, build_ir
from fhirgen.codegen.core.schema import (
    Cardinality,
    EntityDef,
    EntityKind,
    FieldDef,
    Package,
    TypeRef,
)


def make_field(
    name: str,
    type_code: str,
    min_value: int = 0,
    max_value: Optional[int] = 1,
    short: str = "",
) -> FieldDef:
    """Plain field of a primitive or entity type."""
    return FieldDef(
        name=name,
        cardinality=Cardinality(min_value, max_value),
        type_ref=TypeRef.parse(type_code),
        short=short,
    )


def make_choice(
    name: str, *type_codes: str, min_value: int = 0, max_value: Optional[int] = 1
) -> FieldDef:
    """Choice field (``name[x]``) over the given type codes."""
    return FieldDef(
        name=name,
        cardinality=Cardinality(min_value, max_value),
        choices=tuple(TypeRef.parse(code) for code in type_codes),
    )


def make_entity(
    identifier: str,
    *fields: FieldDef,
    kind: EntityKind = EntityKind.COMPLEX_TYPE,
    base: Optional[str] = None,
    **kwargs,
) -> EntityDef:
    return EntityDef(identifier=identifier, kind=kind, base=base, fields=fields, **kwargs)


@pytest.fixture
def foo_package() -> Package:
    """One entity Foo: required string ``name``, optional repeated string ``tags``."""
    return Package(
        "foo",
        "1.0.0",
        (
            make_entity(
                "Foo",
                make_field("name", "string", 1, 1),
                make_field("tags", "string", 0, None),
            ),
        ),
    )


@pytest.fixture
def foo_ir(foo_package: Package) -> IR:
    return build_ir([foo_package])


@pytest.fixture
def core_package() -> Package:
    """A small FHIR-like package with inheritance, backbones and choices."""
    entities = (
        make_entity("Element", make_field("id", "string"), is_abstract=True),
        make_entity(
            "Coding",
            make_field("system", "uri"),
            make_field("code", "code"),
            make_field("display", "string"),
            base="Element",
        ),
        make_entity(
            "CodeableConcept",
            make_field("coding", "Coding", 0, None),
            make_field("text", "string"),
            base="Element",
            documentation="A concept that may be defined by a formal reference "
            "to a terminology or ontology or may be provided by text.",
        ),
        make_entity(
            "Quantity",
            make_field("value", "decimal"),
            make_field("unit", "string"),
            base="Element",
        ),
        make_entity(
            "Resource",
            make_field("id", "id"),
            kind=EntityKind.RESOURCE,
            is_abstract=True,
        ),
        make_entity(
            "DomainResource",
            make_field("implicitRules", "uri"),
            kind=EntityKind.RESOURCE,
            base="Resource",
            is_abstract=True,
        ),
        make_entity(
            "Observation",
            make_field("status", "code", 1, 1, short="registered | final | amended"),
            make_field("code", "CodeableConcept", 1, 1),
            make_choice("value", "Quantity", "CodeableConcept", "string", "boolean"),
            make_field("component", "ObservationComponent", 0, None),
            kind=EntityKind.RESOURCE,
            base="DomainResource",
            documentation="Measurements and simple assertions made about a patient.",
        ),
        make_entity(
            "ObservationComponent",
            make_field("code", "CodeableConcept", 1, 1),
            make_choice("value", "Quantity", "string"),
            kind=EntityKind.BACKBONE,
            base="Element",
        ),
        make_entity(
            "Patient",
            make_field("active", "boolean"),
            make_field("gender", "code"),
            make_field("birthDate", "date"),
            make_choice("deceased", "boolean", "dateTime"),
            make_field("multipleBirthInteger", "integer"),
            kind=EntityKind.RESOURCE,
            base="DomainResource",
        ),
    )
    return Package("core", "4.0.1", entities)


@pytest.fixture
def core_ir(core_package: Package) -> IR:
    return build_ir([core_package])


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Return a not-yet-existing output directory."""
    return tmp_path / "out"


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler changes made by setup_logging (the CLI calls it)."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)

"""Package loading.

Turns package sources into :class:`~fhirgen.codegen.core.schema.Package`
objects. Two input shapes are understood:

* the native format, a JSON object with ``name``, ``version`` and a list
  of ``entities``;
* FHIR ``StructureDefinition`` resources, given as a single resource, a
  ``Bundle``, or a package directory with a ``package.json``.

Constraint definitions (profiles) are returned as separate overlay
packages after the base package, so the IR builder applies them on top of
the types they constrain.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .codegen.core.naming import upper_first
from .codegen.core.schema import (
    BindingStrength,
    Cardinality,
    EntityDef,
    EntityKind,
    FieldDef,
    Package,
    PrimitiveKind,
    SchemaError,
    TypeRef,
    ValueSetBinding,
)
from .logging_config import get_logger
from .utils import DEFAULT_TIMEOUT, JSONLoaderError, is_url, iter_json_files, load_json

logger = get_logger(__name__)

PACKAGE_MANIFEST = "package.json"

# FHIRPath system types used for primitive values inside core definitions
SYSTEM_TYPES = {
    "http://hl7.org/fhirpath/System.String": "string",
    "http://hl7.org/fhirpath/System.Boolean": "boolean",
    "http://hl7.org/fhirpath/System.Integer": "integer",
    "http://hl7.org/fhirpath/System.Long": "integer64",
    "http://hl7.org/fhirpath/System.Decimal": "decimal",
    "http://hl7.org/fhirpath/System.Date": "date",
    "http://hl7.org/fhirpath/System.DateTime": "dateTime",
    "http://hl7.org/fhirpath/System.Time": "time",
}

SD_KINDS = {
    "resource": EntityKind.RESOURCE,
    "complex-type": EntityKind.COMPLEX_TYPE,
    "logical": EntityKind.LOGICAL,
}

BACKBONE_CODES = ("BackboneElement", "Element")


class PackageLoadError(Exception):
    """A package source could not be read."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message)


# Native format


def _parse_type(value: Any, entity: str, field: str) -> TypeRef:
    if isinstance(value, str):
        return TypeRef.parse(value)
    if isinstance(value, dict) and "collection" in value:
        return TypeRef.collection_of(_parse_type(value["collection"], entity, field))
    raise SchemaError(f"invalid type {value!r}", entity, field)


def _parse_binding(value: Any, entity: str, field: str) -> Optional[ValueSetBinding]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise SchemaError("binding must be an object", entity, field)
    try:
        strength = BindingStrength(value.get("strength"))
    except ValueError as e:
        raise SchemaError(f"unknown binding strength {value.get('strength')!r}", entity, field) from e
    return ValueSetBinding(
        strength, value.get("valueSet") or value.get("value_set"), value.get("description")
    )


def _native_field(data: Any, entity: str) -> FieldDef:
    if not isinstance(data, dict):
        raise SchemaError("field must be an object", entity)
    name = data.get("name")
    if not isinstance(name, str):
        raise SchemaError("field has no name", entity)

    cardinality = Cardinality.parse(data.get("min", 0), data.get("max", 1))
    if "choice" in data:
        choices = data["choice"]
        if not isinstance(choices, list):
            raise SchemaError("choice must be a list of types", entity, name)
        type_ref = None
        choice_refs = tuple(_parse_type(choice, entity, name) for choice in choices)
    else:
        if "type" not in data:
            raise SchemaError("field has no type", entity, name)
        type_ref = _parse_type(data["type"], entity, name)
        choice_refs = ()

    return FieldDef(
        name=name,
        cardinality=cardinality,
        type_ref=type_ref,
        choices=choice_refs,
        short=data.get("short", ""),
        definition=data.get("definition", ""),
        binding=_parse_binding(data.get("binding"), entity, name),
        is_modifier=bool(data.get("modifier", False)),
        is_summary=bool(data.get("summary", False)),
    )


def _native_entity(data: Any) -> EntityDef:
    if not isinstance(data, dict):
        raise SchemaError("entity must be an object")
    identifier = data.get("id")
    if not isinstance(identifier, str):
        raise SchemaError("entity has no id")
    try:
        kind = EntityKind(data.get("kind", EntityKind.COMPLEX_TYPE.value))
    except ValueError as e:
        raise SchemaError(f"unknown entity kind {data.get('kind')!r}", identifier) from e

    fields = data.get("fields", [])
    if not isinstance(fields, list):
        raise SchemaError("fields must be a list", identifier)

    return EntityDef(
        identifier=identifier,
        kind=kind,
        base=data.get("base"),
        fields=tuple(_native_field(field, identifier) for field in fields),
        documentation=data.get("documentation", ""),
        url=data.get("url"),
        is_abstract=bool(data.get("abstract", False)),
    )


def parse_native(data: Dict[str, Any]) -> Package:
    """Parse a package in the native JSON format."""
    entities = data.get("entities")
    if not isinstance(entities, list):
        raise SchemaError("package 'entities' must be a list")
    return Package(
        name=data.get("name") or "package",
        version=str(data.get("version") or "0.0.0"),
        entities=tuple(_native_entity(entity) for entity in entities),
    )


# StructureDefinition format


def _last_segment(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    return url.rstrip("/").rsplit("/", 1)[-1]


def _type_code(code: str) -> str:
    return SYSTEM_TYPES.get(code, code)


def _backbone_name(root: str, segments: List[str]) -> str:
    return root + "".join(upper_first(segment) for segment in segments)


def _is_backbone(element: Dict[str, Any]) -> bool:
    codes = [entry.get("code") for entry in element.get("type", [])]
    return len(codes) == 1 and codes[0] in BACKBONE_CODES


class _DefinitionReader:
    """Converts one StructureDefinition into entity definitions."""

    def __init__(self, definition: Dict[str, Any]):
        self.definition = definition
        self.name = definition.get("name") or definition.get("id") or "<unnamed>"
        self.is_profile = definition.get("derivation") == "constraint"

        type_name = definition.get("type")
        if not isinstance(type_name, str) or not type_name:
            raise SchemaError("StructureDefinition has no type", self.name)
        # Logical models may use a URL as their type
        self.root_path = _last_segment(type_name)
        if self.is_profile:
            self.identifier = self.root_path
        else:
            self.identifier = definition.get("name") or self.root_path

        differential = self._elements("differential")
        snapshot = self._elements("snapshot")
        self.snapshot_by_path = {element.get("path"): element for element in snapshot}
        if self.is_profile:
            self.elements = [
                {**self.snapshot_by_path.get(element.get("path"), {}), **element}
                for element in differential
            ]
        else:
            self.elements = differential or snapshot

    def _elements(self, section: str) -> List[Dict[str, Any]]:
        container = self.definition.get(section) or {}
        elements = container.get("element", [])
        if not isinstance(elements, list):
            raise SchemaError(f"{section}.element must be a list", self.name)
        return elements

    def entity_kind(self) -> EntityKind:
        if self.is_profile:
            return EntityKind.PROFILE
        kind = SD_KINDS.get(self.definition.get("kind"))
        if kind is None:
            raise SchemaError(
                f"unsupported StructureDefinition kind {self.definition.get('kind')!r}",
                self.name,
            )
        return kind

    def read(self) -> List[EntityDef]:
        # entity path -> pending entity attributes
        entities: Dict[str, Dict[str, Any]] = {
            self.root_path: {
                "identifier": self.identifier,
                "kind": self.entity_kind(),
                "base": None
                if self.is_profile
                else _last_segment(self.definition.get("baseDefinition")),
                "documentation": "" if self.is_profile else self.definition.get("description", ""),
                "url": self.definition.get("url"),
                "is_abstract": bool(self.definition.get("abstract", False)),
                "fields": [],
            }
        }
        parent_paths = self._parent_paths()

        for element in self.elements:
            path = element.get("path")
            if not isinstance(path, str):
                raise SchemaError("element has no path", self.identifier)
            if ":" in element.get("id", "") or element.get("sliceName"):
                logger.debug("Skipping slice %s in %s", element.get("id"), self.name)
                continue
            if path == self.root_path:
                if not self.is_profile and not entities[path]["documentation"]:
                    entities[path]["documentation"] = element.get("definition", "")
                continue

            parent_path, _, name = path.rpartition(".")
            parent = entities.get(parent_path)
            if parent is None and self.is_profile:
                # Profiles may constrain a nested element without its parent
                parent_element = self.snapshot_by_path.get(parent_path, {})
                if not _is_backbone(parent_element):
                    logger.debug(
                        "Skipping %s in profile %s: %s is not a backbone element",
                        path,
                        self.name,
                        parent_path,
                    )
                    continue
                parent = entities[parent_path] = self._backbone_entry(parent_path, parent_element)
            if parent is None:
                raise SchemaError(f"element {path} has no parent element", self.identifier)

            if path in parent_paths and (not self.is_profile or _is_backbone(element)):
                entities[path] = self._backbone_entry(path, element)

            field_def = self._field(element, parent["identifier"], name, path)
            if field_def is not None:
                parent["fields"].append(field_def)

        return [
            EntityDef(
                identifier=entry["identifier"],
                kind=entry["kind"],
                base=entry["base"],
                fields=tuple(entry["fields"]),
                documentation=entry["documentation"],
                url=entry["url"],
                is_abstract=entry["is_abstract"],
            )
            for entry in entities.values()
        ]

    def _backbone_entry(self, path: str, element: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "identifier": self._entity_for_path(path),
            "kind": EntityKind.PROFILE if self.is_profile else EntityKind.BACKBONE,
            "base": None if self.is_profile else self._backbone_base(element),
            "documentation": "" if self.is_profile else element.get("definition", ""),
            "url": None,
            "is_abstract": False,
            "fields": [],
        }

    def _parent_paths(self) -> set:
        """Paths of elements that have child elements, i.e. backbone elements."""
        paths = set()
        for element in self.elements:
            parent = element.get("path", "").rpartition(".")[0]
            if parent and parent != self.root_path:
                paths.add(parent)
        return paths

    def _entity_for_path(self, path: str) -> str:
        return _backbone_name(self.identifier, path.split(".")[1:])

    @staticmethod
    def _backbone_base(element: Dict[str, Any]) -> str:
        codes = [entry.get("code") for entry in element.get("type", [])]
        if len(codes) == 1 and codes[0] in BACKBONE_CODES:
            return codes[0]
        return "BackboneElement"

    def _field(
        self, element: Dict[str, Any], entity: str, name: str, path: str
    ) -> Optional[FieldDef]:
        is_choice = name.endswith("[x]")
        field_name = name[:-3] if is_choice else name

        if self.is_profile and ("min" not in element or "max" not in element):
            logger.debug("Skipping %s in profile %s: no cardinality", path, self.name)
            return None
        cardinality = Cardinality.parse(element.get("min", 0), element.get("max", "1"))

        codes = [_type_code(entry.get("code", "")) for entry in element.get("type", [])]
        reference = element.get("contentReference")

        if reference:
            target = reference.split("#", 1)[-1]
            type_ref = TypeRef.entity_of(_backbone_name(self.identifier, target.split(".")[1:]))
        elif not codes:
            if self.is_profile:
                logger.debug("Skipping %s in profile %s: no type", path, self.name)
                return None
            raise SchemaError("element has no type", entity, field_name)
        elif is_choice:
            type_ref = None
        elif len(codes) > 1:
            raise SchemaError(f"non-choice element lists {len(codes)} types", entity, field_name)
        elif codes[0] in BACKBONE_CODES:
            type_ref = TypeRef.entity_of(self._entity_for_path(path))
        else:
            type_ref = TypeRef.parse(codes[0])

        binding = element.get("binding")
        return FieldDef(
            name=field_name,
            cardinality=cardinality,
            type_ref=type_ref,
            choices=tuple(TypeRef.parse(code) for code in codes) if is_choice else (),
            short=element.get("short", ""),
            definition=element.get("definition", ""),
            binding=_parse_binding(binding, entity, field_name) if binding else None,
            is_modifier=bool(element.get("isModifier", False)),
            is_summary=bool(element.get("isSummary", False)),
        )


def entities_from_structure_definition(definition: Dict[str, Any]) -> List[EntityDef]:
    """
    Entities defined by one StructureDefinition.

    Returns an empty list for primitive types, which map onto
    :class:`PrimitiveKind` instead.
    """
    if definition.get("kind") == "primitive-type":
        return []
    if PrimitiveKind.from_code(definition.get("type", "")) is not None:
        return []
    return _DefinitionReader(definition).read()


def parse_structure_definitions(
    definitions: Iterable[Dict[str, Any]], name: str, version: str = "0.0.0"
) -> List[Package]:
    """
    Build packages from StructureDefinition resources.

    Returns:
        The base package followed by one overlay package per profile
    """
    entities: List[EntityDef] = []
    profiles: List[Tuple[str, List[EntityDef]]] = []
    for definition in definitions:
        defined = entities_from_structure_definition(definition)
        if not defined:
            continue
        if definition.get("derivation") == "constraint":
            profiles.append((definition.get("name") or definition.get("id"), defined))
        else:
            entities.extend(defined)

    packages = [Package(name, version, tuple(entities))] if entities else []
    for profile_name, profile_entities in profiles:
        packages.append(Package(f"{name}:{profile_name}", version, tuple(profile_entities)))
    logger.debug(
        "Read %d entities and %d profile(s) for %s", len(entities), len(profiles), name
    )
    return packages


def _bundle_definitions(bundle: Dict[str, Any]) -> List[Dict[str, Any]]:
    definitions = []
    for entry in bundle.get("entry", []):
        resource = entry.get("resource") if isinstance(entry, dict) else None
        if isinstance(resource, dict) and resource.get("resourceType") == "StructureDefinition":
            definitions.append(resource)
    return definitions


def parse_document(data: Any, source: str = "<memory>") -> List[Package]:
    """Packages held by one parsed JSON document."""
    if not isinstance(data, dict):
        raise PackageLoadError(f"{source}: expected a JSON object", source)

    resource_type = data.get("resourceType")
    if resource_type == "StructureDefinition":
        return parse_structure_definitions(
            [data], data.get("name") or "package", str(data.get("version") or "0.0.0")
        )
    if resource_type == "Bundle":
        return parse_structure_definitions(
            _bundle_definitions(data), data.get("id") or "bundle", "0.0.0"
        )
    if "entities" in data:
        return [parse_native(data)]
    raise PackageLoadError(
        f"{source}: not a native package, StructureDefinition or Bundle", source
    )


def _load_directory(directory: Path, timeout: int) -> List[Package]:
    manifest_path = directory / PACKAGE_MANIFEST
    manifest = load_json(manifest_path, timeout) if manifest_path.is_file() else {}
    name = manifest.get("name") or directory.name
    version = str(manifest.get("version") or "0.0.0")

    definitions = []
    for path in iter_json_files(directory):
        if path.name == PACKAGE_MANIFEST:
            continue
        data = load_json(path, timeout)
        if isinstance(data, dict) and data.get("resourceType") == "StructureDefinition":
            definitions.append(data)
        elif isinstance(data, dict) and data.get("resourceType") == "Bundle":
            definitions.extend(_bundle_definitions(data))
        else:
            logger.debug("Skipping %s: not a StructureDefinition", path.name)
    if not definitions:
        raise PackageLoadError(f"No StructureDefinitions found in {directory}", str(directory))
    return parse_structure_definitions(definitions, name, version)


def load_packages(source: str | Path, timeout: int = DEFAULT_TIMEOUT) -> List[Package]:
    """
    Load every package a source holds.

    Args:
        source: JSON file, package directory, or http(s) URL

    Returns:
        Packages in precedence order: base definitions first, then profiles

    Raises:
        PackageLoadError: The source cannot be read
        SchemaError: The source is readable but malformed
    """
    label = str(source)
    try:
        if not is_url(source) and Path(source).is_dir():
            packages = _load_directory(Path(source), timeout)
        else:
            packages = parse_document(load_json(source, timeout), label)
    except JSONLoaderError as e:
        raise PackageLoadError(str(e), label) from e

    if not packages:
        raise PackageLoadError(f"{label} defines no entities", label)
    logger.info(
        "Loaded %s from %s", ", ".join(package.label for package in packages), label
    )
    return packages


def load_package(source: str | Path, timeout: int = DEFAULT_TIMEOUT) -> Package:
    """
    Load a source that holds exactly one package.

    Raises:
        PackageLoadError: The source cannot be read, or carries profiles
            (use :func:`load_packages` for those)
    """
    packages = load_packages(source, timeout)
    if len(packages) != 1:
        raise PackageLoadError(
            f"{source} holds {len(packages)} packages; use load_packages", str(source)
        )
    return packages[0]

"""
Core schema representation for code generation.

Immutable model of the structure definitions carried by a schema package:
entities (resources, data types, profiles), their fields, cardinalities,
choice fields and value-set bindings. Everything here is frozen so a loaded
package can be shared freely between builds and threads.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple
from enum import Enum


class SchemaError(Exception):
    """Raised when schema input is structurally malformed."""

    def __init__(
        self, message: str, entity: Optional[str] = None, field: Optional[str] = None
    ):
        self.entity = entity
        self.field = field
        location = ".".join(part for part in (entity, field) if part)
        super().__init__(f"{location}: {message}" if location else message)


class PrimitiveKind(Enum):
    """FHIR primitive data types."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    INTEGER64 = "integer64"
    DECIMAL = "decimal"
    POSITIVE_INT = "positiveInt"
    UNSIGNED_INT = "unsignedInt"
    STRING = "string"
    CODE = "code"
    ID = "id"
    MARKDOWN = "markdown"
    URI = "uri"
    URL = "url"
    CANONICAL = "canonical"
    OID = "oid"
    UUID = "uuid"
    DATE = "date"
    DATE_TIME = "dateTime"
    INSTANT = "instant"
    TIME = "time"
    BASE64_BINARY = "base64Binary"
    XHTML = "xhtml"

    @classmethod
    def from_code(cls, code: str) -> Optional["PrimitiveKind"]:
        """Return the primitive for a type code, or None for non-primitives."""
        return cls._value2member_map_.get(code)


class CardinalityRegime(Enum):
    """How a field's cardinality is rendered by generators."""

    REQUIRED = "required"  # 1..1
    OPTIONAL = "optional"  # 0..1
    REPEATED = "repeated"  # 0..* / 1..* / n..m with m > 1


@dataclass(frozen=True)
class Cardinality:
    """Min/max occurrence constraint. ``max=None`` means unbounded."""

    min: int = 0
    max: Optional[int] = 1

    def __post_init__(self):
        if self.min < 0:
            raise SchemaError(f"cardinality min must be >= 0, got {self.min}")
        if self.max is not None and self.max < self.min:
            raise SchemaError(f"cardinality max {self.max} is below min {self.min}")

    @classmethod
    def required(cls) -> "Cardinality":
        return cls(1, 1)

    @classmethod
    def optional(cls) -> "Cardinality":
        return cls(0, 1)

    @classmethod
    def optional_array(cls) -> "Cardinality":
        return cls(0, None)

    @classmethod
    def required_array(cls) -> "Cardinality":
        return cls(1, None)

    @classmethod
    def parse(cls, min_value, max_value) -> "Cardinality":
        """Build a cardinality from raw definition values (``"*"`` is unbounded)."""
        try:
            minimum = int(min_value) if min_value is not None else 0
            if max_value is None:
                maximum = 1
            elif str(max_value) == "*":
                maximum = None
            else:
                maximum = int(max_value)
        except (TypeError, ValueError) as e:
            raise SchemaError(
                f"invalid cardinality {min_value!r}..{max_value!r}"
            ) from e
        return cls(minimum, maximum)

    @property
    def is_required(self) -> bool:
        return self.min >= 1

    @property
    def is_optional(self) -> bool:
        return self.min == 0

    @property
    def is_array(self) -> bool:
        return self.max is None or self.max > 1

    @property
    def is_prohibited(self) -> bool:
        return self.max == 0

    @property
    def regime(self) -> CardinalityRegime:
        if self.is_array:
            return CardinalityRegime.REPEATED
        if self.is_required:
            return CardinalityRegime.REQUIRED
        return CardinalityRegime.OPTIONAL

    def narrows(self, other: "Cardinality") -> bool:
        """True when every count allowed here is also allowed by ``other``."""
        if self.min < other.min:
            return False
        if other.max is None:
            return True
        return self.max is not None and self.max <= other.max

    def __str__(self) -> str:
        return f"{self.min}..{'*' if self.max is None else self.max}"


class TypeRefKind(Enum):
    """Discriminant of a TypeRef."""

    PRIMITIVE = "primitive"
    ENTITY = "entity"
    COLLECTION = "collection"


@dataclass(frozen=True)
class TypeRef:
    """Reference to a type: a primitive, a named entity, or a collection of either."""

    kind: TypeRefKind
    primitive: Optional[PrimitiveKind] = None
    entity: Optional[str] = None
    element: Optional["TypeRef"] = None

    def __post_init__(self):
        members = {
            TypeRefKind.PRIMITIVE: self.primitive,
            TypeRefKind.ENTITY: self.entity,
            TypeRefKind.COLLECTION: self.element,
        }
        for kind, value in members.items():
            if kind == self.kind and not value:
                raise SchemaError(f"{self.kind.value} type reference is missing its target")
            if kind != self.kind and value is not None:
                raise SchemaError(
                    f"{self.kind.value} type reference must not carry a {kind.value} target"
                )

    @classmethod
    def primitive_of(cls, kind: PrimitiveKind) -> "TypeRef":
        return cls(TypeRefKind.PRIMITIVE, primitive=kind)

    @classmethod
    def entity_of(cls, identifier: str) -> "TypeRef":
        return cls(TypeRefKind.ENTITY, entity=identifier)

    @classmethod
    def collection_of(cls, element: "TypeRef") -> "TypeRef":
        return cls(TypeRefKind.COLLECTION, element=element)

    @classmethod
    def parse(cls, code: str) -> "TypeRef":
        """Primitive if the code names one, otherwise an entity reference."""
        if not code or not isinstance(code, str):
            raise SchemaError(f"invalid type code: {code!r}")
        kind = PrimitiveKind.from_code(code)
        if kind is not None:
            return cls.primitive_of(kind)
        return cls.entity_of(code)

    @property
    def code(self) -> str:
        """Source type code (element code for collections)."""
        if self.kind == TypeRefKind.PRIMITIVE:
            return self.primitive.value
        if self.kind == TypeRefKind.ENTITY:
            return self.entity
        return self.element.code

    def entity_refs(self) -> Iterator[str]:
        """Yield every entity identifier this reference points at."""
        if self.kind == TypeRefKind.ENTITY:
            yield self.entity
        elif self.kind == TypeRefKind.COLLECTION:
            yield from self.element.entity_refs()

    def __str__(self) -> str:
        if self.kind == TypeRefKind.COLLECTION:
            return f"{self.element}[]"
        return self.code


class BindingStrength(Enum):
    """Value-set binding strength."""

    REQUIRED = "required"
    EXTENSIBLE = "extensible"
    PREFERRED = "preferred"
    EXAMPLE = "example"


@dataclass(frozen=True)
class ValueSetBinding:
    strength: BindingStrength
    value_set: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class FieldDef:
    """
    One field of an entity.

    A plain field has exactly one ``type_ref``. A choice field (``value[x]``
    in source definitions, stored here under its base name ``value``) has no
    ``type_ref`` and lists its alternatives in ``choices``.
    """

    name: str
    cardinality: Cardinality = field(default_factory=Cardinality.optional)
    type_ref: Optional[TypeRef] = None
    choices: Tuple[TypeRef, ...] = ()
    short: str = ""
    definition: str = ""
    binding: Optional[ValueSetBinding] = None
    is_modifier: bool = False
    is_summary: bool = False

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise SchemaError("field name must be a non-empty string")
        if "." in self.name or self.name.endswith("[x]"):
            raise SchemaError(f"invalid field name {self.name!r}", field=self.name)
        object.__setattr__(self, "choices", tuple(self.choices))
        if self.choices and self.type_ref is not None:
            raise SchemaError(
                "choice field must not also declare a single type", field=self.name
            )
        if not self.choices and self.type_ref is None:
            raise SchemaError("field has no type", field=self.name)

    @property
    def is_choice(self) -> bool:
        return bool(self.choices)

    @property
    def type_refs(self) -> Tuple[TypeRef, ...]:
        return self.choices if self.choices else (self.type_ref,)


class EntityKind(Enum):
    """Kind of structure definition an entity came from."""

    RESOURCE = "resource"
    COMPLEX_TYPE = "complex-type"
    PROFILE = "profile"
    LOGICAL = "logical"
    BACKBONE = "backbone"


@dataclass(frozen=True)
class EntityDef:
    """A named structure: resource, complex data type, profile or logical model."""

    identifier: str
    kind: EntityKind = EntityKind.COMPLEX_TYPE
    base: Optional[str] = None
    fields: Tuple[FieldDef, ...] = ()
    documentation: str = ""
    url: Optional[str] = None
    is_abstract: bool = False

    def __post_init__(self):
        if not self.identifier or not isinstance(self.identifier, str):
            raise SchemaError("entity identifier must be a non-empty string")
        object.__setattr__(self, "fields", tuple(self.fields))
        seen = set()
        for field_def in self.fields:
            if field_def.name in seen:
                raise SchemaError(
                    "field declared twice", entity=self.identifier, field=field_def.name
                )
            seen.add(field_def.name)

    def get_field(self, name: str) -> Optional[FieldDef]:
        for field_def in self.fields:
            if field_def.name == name:
                return field_def
        return None


@dataclass(frozen=True)
class Package:
    """A versioned collection of entity definitions."""

    name: str
    version: str = "0.0.0"
    entities: Tuple[EntityDef, ...] = ()

    def __post_init__(self):
        if not self.name:
            raise SchemaError("package name must not be empty")
        object.__setattr__(self, "entities", tuple(self.entities))
        seen = set()
        for entity in self.entities:
            if entity.identifier in seen:
                raise SchemaError(
                    f"entity defined twice in package {self.label}",
                    entity=entity.identifier,
                )
            seen.add(entity.identifier)

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"

    def get_entity(self, identifier: str) -> Optional[EntityDef]:
        for entity in self.entities:
            if entity.identifier == identifier:
                return entity
        return None

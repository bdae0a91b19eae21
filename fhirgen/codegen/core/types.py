"""
Language-agnostic type mapping.

A type mapper turns IR type references plus cardinality into a
:class:`TargetType` descriptor that templates render verbatim. Mappers are
pure: they hold only their construction-time configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Sequence, Tuple

from .ir import IRField
from .schema import (
    Cardinality,
    CardinalityRegime,
    PrimitiveKind,
    TypeRef,
    TypeRefKind,
)


@dataclass(frozen=True)
class UnionAlternative:
    """One member of a choice field."""

    discriminant: str  # e.g. valueString
    type_ref: TypeRef
    target: "TargetType"


@dataclass(frozen=True)
class TargetType:
    """A target-language type expression with everything needed to render it."""

    name: str  # full expression, e.g. "list[Coding]" or "*string"
    element: str  # element expression without cardinality wrapping
    regime: CardinalityRegime
    imports: FrozenSet[str] = field(default_factory=frozenset)
    entity_refs: FrozenSet[str] = field(default_factory=frozenset)
    alternatives: Tuple[UnionAlternative, ...] = ()

    @property
    def is_union(self) -> bool:
        return bool(self.alternatives)

    @property
    def is_required(self) -> bool:
        return self.regime == CardinalityRegime.REQUIRED

    @property
    def is_optional(self) -> bool:
        return self.regime == CardinalityRegime.OPTIONAL

    @property
    def is_repeated(self) -> bool:
        return self.regime == CardinalityRegime.REPEATED


class TypeMapper(ABC):
    """Base class for per-language type mappers."""

    language = ""

    def __init__(self, type_overrides: Optional[Mapping[str, str]] = None):
        """
        Args:
            type_overrides: Primitive type code to target type name,
                replacing the built-in mapping (e.g. ``{"decimal": "float"}``)
        """
        self.type_overrides: Dict[str, str] = dict(type_overrides or {})
        self._primitives = self._build_primitive_type_map()

    @abstractmethod
    def _build_primitive_type_map(self) -> Dict[PrimitiveKind, Tuple[str, FrozenSet[str]]]:
        """Return primitive kind -> (type name, imports needed)."""

    @abstractmethod
    def entity_name(self, identifier: str) -> str:
        """Target type name for an entity identifier."""

    @abstractmethod
    def collection_of(self, element: str) -> str:
        """Type expression for a sequence of ``element``."""

    @abstractmethod
    def wrap(self, element: str, cardinality: Cardinality) -> str:
        """Apply cardinality to an element type expression."""

    def union_of(self, members: Sequence[str]) -> str:
        """Type expression accepting any of ``members``."""
        return " | ".join(members)

    def map_primitive(self, kind: PrimitiveKind) -> Tuple[str, FrozenSet[str]]:
        override = self.type_overrides.get(kind.value)
        if override:
            return override, frozenset()
        return self._primitives[kind]

    def element_type(self, type_ref: TypeRef) -> Tuple[str, FrozenSet[str], FrozenSet[str]]:
        """Map a type reference without cardinality: (name, imports, entity refs)."""
        if type_ref.kind == TypeRefKind.PRIMITIVE:
            name, imports = self.map_primitive(type_ref.primitive)
            return name, imports, frozenset()
        if type_ref.kind == TypeRefKind.ENTITY:
            return self.entity_name(type_ref.entity), frozenset(), frozenset({type_ref.entity})
        name, imports, refs = self.element_type(type_ref.element)
        return self.collection_of(name), imports, refs

    def map(self, type_ref: TypeRef, cardinality: Cardinality) -> TargetType:
        """Map a single-typed field."""
        element, imports, refs = self.element_type(type_ref)
        return TargetType(
            name=self.wrap(element, cardinality),
            element=element,
            regime=cardinality.regime,
            imports=imports,
            entity_refs=refs,
        )

    def map_choice(self, ir_field: IRField) -> TargetType:
        """
        Map a choice field. Each alternative becomes its own optional member;
        at most one of them is populated in an instance.
        """
        member_cardinality = (
            ir_field.cardinality if ir_field.cardinality.is_array else Cardinality.optional()
        )
        alternatives = []
        imports = set()
        refs = set()
        for choice in ir_field.choices:
            target = self.map(choice, member_cardinality)
            alternatives.append(
                UnionAlternative(ir_field.choice_discriminant(choice), choice, target)
            )
            imports.update(target.imports)
            refs.update(target.entity_refs)

        element = self.union_of([alt.target.element for alt in alternatives])
        return TargetType(
            name=self.wrap(element, ir_field.cardinality),
            element=element,
            regime=ir_field.regime,
            imports=frozenset(imports),
            entity_refs=frozenset(refs),
            alternatives=tuple(alternatives),
        )

    def map_field(self, ir_field: IRField) -> TargetType:
        if ir_field.is_choice:
            return self.map_choice(ir_field)
        return self.map(ir_field.type_ref, ir_field.cardinality)

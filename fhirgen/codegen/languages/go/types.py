"""
Go-specific type system for code generation.

Maps IR type references onto Go types: value types for required fields,
pointers for optional ones, slices for repeated ones.
"""

from typing import Dict, FrozenSet, Optional, Mapping, Sequence, Tuple

from ...core.schema import Cardinality, CardinalityRegime, PrimitiveKind
from ...core.types import TypeMapper
from .naming import go_exported_name

JSON_IMPORT = "encoding/json"


class GoTypeMapper(TypeMapper):
    """Central engine for mapping IR types to Go types."""

    language = "go"

    def __init__(
        self,
        type_overrides: Optional[Mapping[str, str]] = None,
        decimal_type: str = "json.Number",
    ):
        self.decimal_type = decimal_type
        super().__init__(type_overrides)

    def _build_primitive_type_map(self) -> Dict[PrimitiveKind, Tuple[str, FrozenSet[str]]]:
        decimal_imports = (
            frozenset({JSON_IMPORT}) if self.decimal_type.startswith("json.") else frozenset()
        )
        types = {kind: ("string", frozenset()) for kind in PrimitiveKind}
        types.update(
            {
                PrimitiveKind.BOOLEAN: ("bool", frozenset()),
                PrimitiveKind.INTEGER: ("int32", frozenset()),
                PrimitiveKind.INTEGER64: ("int64", frozenset()),
                PrimitiveKind.POSITIVE_INT: ("uint32", frozenset()),
                PrimitiveKind.UNSIGNED_INT: ("uint32", frozenset()),
                PrimitiveKind.DECIMAL: (self.decimal_type, decimal_imports),
            }
        )
        return types

    def entity_name(self, identifier: str) -> str:
        return go_exported_name(identifier)

    def collection_of(self, element: str) -> str:
        return f"[]{element}"

    def wrap(self, element: str, cardinality: Cardinality) -> str:
        regime = cardinality.regime
        if regime == CardinalityRegime.REPEATED:
            return f"[]{element}"
        if regime == CardinalityRegime.OPTIONAL:
            return f"*{element}"
        return element

    def union_of(self, members: Sequence[str]) -> str:
        # Go has no sum types; choice alternatives are rendered as separate fields
        return "any"

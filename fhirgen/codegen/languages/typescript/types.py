"""
TypeScript type mapping.

Cardinality is expressed partly on the property (``?`` for optional) and
partly on the type (``T[]`` for repeated), so :meth:`wrap` only handles
arrays.
"""

from typing import Dict, FrozenSet, Sequence, Tuple

from ...core.schema import Cardinality, CardinalityRegime, PrimitiveKind
from ...core.types import TypeMapper
from .naming import ts_type_name


TS_TYPE_MAP = {
    PrimitiveKind.BOOLEAN: "boolean",
    PrimitiveKind.INTEGER: "number",
    PrimitiveKind.POSITIVE_INT: "number",
    PrimitiveKind.UNSIGNED_INT: "number",
    PrimitiveKind.DECIMAL: "number",
    # integer64 is carried as a JSON string to keep full precision
    PrimitiveKind.INTEGER64: "string",
}


def array_of(element: str) -> str:
    if " | " in element:
        return f"({element})[]"
    return f"{element}[]"


class TypeScriptTypeMapper(TypeMapper):
    """Maps IR types to TypeScript type expressions."""

    language = "typescript"

    def _build_primitive_type_map(self) -> Dict[PrimitiveKind, Tuple[str, FrozenSet[str]]]:
        return {kind: (TS_TYPE_MAP.get(kind, "string"), frozenset()) for kind in PrimitiveKind}

    def entity_name(self, identifier: str) -> str:
        return ts_type_name(identifier)

    def collection_of(self, element: str) -> str:
        return array_of(element)

    def wrap(self, element: str, cardinality: Cardinality) -> str:
        if cardinality.regime == CardinalityRegime.REPEATED:
            return array_of(element)
        return element

    def union_of(self, members: Sequence[str]) -> str:
        unique = []
        for member in members:
            if member not in unique:
                unique.append(member)
        return " | ".join(unique)

"""
Python type mapping for dataclass generation.
"""

from typing import Dict, FrozenSet, Tuple

from ...core.schema import Cardinality, CardinalityRegime, PrimitiveKind
from ...core.types import TypeMapper
from .config import PYTHON_IMPORT_MAP, PYTHON_TYPE_MAP
from .naming import python_class_name


class PythonTypeMapper(TypeMapper):
    """Maps IR types to PEP 604 / PEP 585 annotations."""

    language = "python"

    def _build_primitive_type_map(self) -> Dict[PrimitiveKind, Tuple[str, FrozenSet[str]]]:
        types = {}
        for kind in PrimitiveKind:
            name = PYTHON_TYPE_MAP.get(kind, "str")
            imports = frozenset({PYTHON_IMPORT_MAP[name]}) if name in PYTHON_IMPORT_MAP else frozenset()
            types[kind] = (name, imports)
        return types

    def map_primitive(self, kind: PrimitiveKind) -> Tuple[str, FrozenSet[str]]:
        override = self.type_overrides.get(kind.value)
        if override:
            imports = PYTHON_IMPORT_MAP.get(override)
            return override, frozenset({imports}) if imports else frozenset()
        return self._primitives[kind]

    def entity_name(self, identifier: str) -> str:
        return python_class_name(identifier)

    def collection_of(self, element: str) -> str:
        return f"list[{element}]"

    def wrap(self, element: str, cardinality: Cardinality) -> str:
        regime = cardinality.regime
        if regime == CardinalityRegime.REPEATED:
            return f"list[{element}]"
        if regime == CardinalityRegime.OPTIONAL:
            return f"{element} | None"
        return element

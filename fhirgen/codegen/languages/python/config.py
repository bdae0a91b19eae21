"""
Python-specific configuration and type mappings.
"""

from typing import Any, Dict

from ...core.schema import PrimitiveKind


# Python type mappings
PYTHON_TYPE_MAP = {
    PrimitiveKind.BOOLEAN: "bool",
    PrimitiveKind.INTEGER: "int",
    PrimitiveKind.INTEGER64: "int",
    PrimitiveKind.POSITIVE_INT: "int",
    PrimitiveKind.UNSIGNED_INT: "int",
    PrimitiveKind.DECIMAL: "Decimal",
}

# Types that require imports
PYTHON_IMPORT_MAP = {
    "Decimal": "from decimal import Decimal",
    "datetime": "from datetime import datetime",
    "date": "from datetime import date",
    "time": "from datetime import time",
    "Any": "from typing import Any",
}


class PythonConfig:
    """Python-specific configuration, read from ``GeneratorConfig.language_config``."""

    def __init__(self, **kwargs: Any):
        """Initialize Python configuration."""
        # Dataclass options
        self.dataclass_kw_only = kwargs.get("kw_only", True)
        self.dataclass_slots = kwargs.get("slots", False)
        self.dataclass_frozen = kwargs.get("frozen", False)

        # Extra files
        self.emit_helpers = kwargs.get("emit_helpers", True)
        self.emit_py_typed = kwargs.get("py_typed", True)

    def dataclass_options(self) -> Dict[str, bool]:
        """Keyword arguments rendered into each ``@dataclass(...)`` decorator."""
        options = {}
        if self.dataclass_kw_only:
            options["kw_only"] = True
        if self.dataclass_slots:
            options["slots"] = True
        if self.dataclass_frozen:
            options["frozen"] = True
        return options

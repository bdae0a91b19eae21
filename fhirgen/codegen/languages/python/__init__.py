"""
Python code generator module.

Generates a package of dataclasses from the IR.
"""

from .config import PythonConfig
from .generator import PythonGenerator
from .naming import (
    create_python_sanitizer,
    python_class_name,
    python_module_name,
)
from .types import PythonTypeMapper

__all__ = [
    "PythonGenerator",
    "PythonTypeMapper",
    "PythonConfig",
    "create_python_sanitizer",
    "python_class_name",
    "python_module_name",
]

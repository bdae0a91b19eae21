"""
TypeScript code generator module.

Generates TypeScript interfaces from the IR.
"""

from .generator import TypeScriptGenerator
from .naming import create_typescript_sanitizer, ts_property_name, ts_type_name
from .types import TypeScriptTypeMapper

__all__ = [
    "TypeScriptGenerator",
    "TypeScriptTypeMapper",
    "create_typescript_sanitizer",
    "ts_property_name",
    "ts_type_name",
]

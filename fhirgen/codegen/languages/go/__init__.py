"""
Go code generator module.

Generates Go structs with JSON tags from the IR.
"""

from .generator import GoGenerator
from .naming import create_go_sanitizer, go_exported_name, go_file_name
from .types import GoTypeMapper

__all__ = [
    "GoGenerator",
    "GoTypeMapper",
    "create_go_sanitizer",
    "go_exported_name",
    "go_file_name",
]

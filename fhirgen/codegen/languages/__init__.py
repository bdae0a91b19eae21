"""
Language-specific code generators.

Each subpackage provides a generator, a type mapper, naming rules and
Jinja2 templates for one target language.
"""

from .go import GoGenerator
from .python import PythonGenerator
from .typescript import TypeScriptGenerator

__all__ = [
    "GoGenerator",
    "PythonGenerator",
    "TypeScriptGenerator",
]

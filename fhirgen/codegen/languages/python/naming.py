"""
Python-specific naming utilities and sanitization.

Handles Python reserved words, builtins, and naming conventions.
"""

from ...core.naming import NameSanitizer, NamingCase, upper_first


# Python reserved keywords
PYTHON_RESERVED_WORDS = {
    "False",
    "None",
    "True",
    "and",
    "as",
    "assert",
    "async",
    "await",
    "break",
    "class",
    "continue",
    "def",
    "del",
    "elif",
    "else",
    "except",
    "finally",
    "for",
    "from",
    "global",
    "if",
    "import",
    "in",
    "is",
    "lambda",
    "nonlocal",
    "not",
    "or",
    "pass",
    "raise",
    "return",
    "try",
    "while",
    "with",
    "yield",
}

# Names that generated classes must not shadow inside their modules
PYTHON_BUILTIN_TYPES = {
    "int",
    "float",
    "str",
    "bool",
    "list",
    "dict",
    "set",
    "tuple",
    "bytes",
    "frozenset",
    "object",
    "type",
    "field",
    "dataclass",
    "ClassVar",
    "Decimal",
    "TYPE_CHECKING",
}

# Names the package __init__ exports next to the generated classes
HELPER_EXPORTS = {"ChoiceError", "ValidationIssue", "ValidationResult"}

# Names a generated class body evaluates, so attributes must not rebind them
CLASS_BODY_NAMES = {"field", "dataclass", "ClassVar", "TYPE_CHECKING", "Decimal", "list"}

# Class attributes every generated class may define
GENERATED_CLASS_ATTRIBUTES = {"resource_type", "CHOICE_GROUPS"}


def create_python_sanitizer() -> NameSanitizer:
    """Create a name sanitizer configured for Python classes and modules."""
    return NameSanitizer(PYTHON_RESERVED_WORDS, PYTHON_BUILTIN_TYPES | HELPER_EXPORTS)


def create_python_field_sanitizer() -> NameSanitizer:
    """
    Create a name sanitizer for dataclass attributes.

    Attributes avoid keywords and the names the class body itself calls,
    such as ``field`` in ``= field(...)`` and ``list`` in default factories.
    """
    return NameSanitizer(PYTHON_RESERVED_WORDS, CLASS_BODY_NAMES)


_class_sanitizer = create_python_sanitizer()


def python_class_name(identifier: str) -> str:
    """Class name keeping the identifier's casing: ``codeableConcept`` -> ``CodeableConcept``."""
    return _class_sanitizer.sanitize_name(upper_first(identifier), NamingCase.PRESERVE)


def python_module_name(identifier: str) -> str:
    """Module name for an entity: ``CodeableConcept`` -> ``codeable_concept``."""
    return _class_sanitizer.sanitize_name(identifier, NamingCase.SNAKE_CASE)

"""
TypeScript-specific naming utilities.

Interface names keep the source casing; property names are kept verbatim
because they are the JSON wire names.
"""

import re

from ...core.naming import NameSanitizer, NamingCase, upper_first


# Words that cannot name a type in a TypeScript module
TS_RESERVED_WORDS = {
    "break",
    "case",
    "catch",
    "class",
    "const",
    "continue",
    "debugger",
    "default",
    "delete",
    "do",
    "else",
    "enum",
    "export",
    "extends",
    "false",
    "finally",
    "for",
    "function",
    "if",
    "import",
    "in",
    "instanceof",
    "new",
    "null",
    "return",
    "super",
    "switch",
    "this",
    "throw",
    "true",
    "try",
    "typeof",
    "var",
    "void",
    "while",
    "with",
    "implements",
    "interface",
    "let",
    "package",
    "private",
    "protected",
    "public",
    "static",
    "yield",
}

# Predefined type names
TS_BUILTIN_TYPES = {
    "any",
    "bigint",
    "boolean",
    "never",
    "number",
    "object",
    "string",
    "symbol",
    "undefined",
    "unknown",
    "Array",
    "Record",
    "Partial",
    "Readonly",
    "Required",
    "Pick",
    "Omit",
    "Promise",
}

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def create_typescript_sanitizer() -> NameSanitizer:
    """Create a name sanitizer configured for TypeScript type names."""
    return NameSanitizer(TS_RESERVED_WORDS, TS_BUILTIN_TYPES)


_sanitizer = create_typescript_sanitizer()


def ts_type_name(identifier: str) -> str:
    """Interface name for an entity: ``codeableConcept`` -> ``CodeableConcept``."""
    return _sanitizer.sanitize_name(upper_first(identifier), NamingCase.PRESERVE)


# Module stems taken by generated support files, compared case-insensitively
SUPPORT_MODULE_STEMS = frozenset({"index", "helpers", "validation"})


def ts_module_name(identifier: str) -> str:
    """Module stem for an entity; never one a support file uses, even on a case-insensitive disk."""
    stem = ts_type_name(identifier)
    if stem.lower() in SUPPORT_MODULE_STEMS:
        return f"{stem}_"
    return stem


def ts_property_name(name: str) -> str:
    """Property key as written in an interface; quoted when not a plain identifier."""
    if _IDENTIFIER.match(name):
        return name
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def jsdoc_safe(text: str) -> str:
    """Keep text from closing a JSDoc block early."""
    return (text or "").replace("*/", "*\\/")

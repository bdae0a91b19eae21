"""
Go-specific naming utilities and sanitization.

Handles Go reserved words, builtins, exported identifiers and file names.
"""

from ...core.naming import NameSanitizer, NamingCase, to_snake_case, upper_first


# Go reserved words
GO_RESERVED_WORDS = {
    "break",
    "case",
    "chan",
    "const",
    "continue",
    "default",
    "defer",
    "else",
    "fallthrough",
    "for",
    "func",
    "go",
    "goto",
    "if",
    "import",
    "interface",
    "map",
    "package",
    "range",
    "return",
    "select",
    "struct",
    "switch",
    "type",
    "var",
}

# Go builtin types and functions
GO_BUILTIN_TYPES = {
    "any",
    "bool",
    "byte",
    "comparable",
    "error",
    "float32",
    "float64",
    "int",
    "int8",
    "int16",
    "int32",
    "int64",
    "rune",
    "string",
    "uint",
    "uint8",
    "uint16",
    "uint32",
    "uint64",
    "uintptr",
}

# File stems taken by the generated support files
SUPPORT_FILE_STEMS = frozenset({"doc", "helpers"})

# File name suffixes the go tool treats as build constraints or tests
GO_SPECIAL_FILE_SUFFIXES = (
    "_test",
    "_aix", "_android", "_darwin", "_dragonfly", "_freebsd", "_hurd", "_illumos",
    "_ios", "_js", "_linux", "_nacl", "_netbsd", "_openbsd", "_plan9", "_solaris",
    "_wasip1", "_windows", "_zos",
    "_386", "_amd64", "_arm", "_arm64", "_loong64", "_mips", "_mips64", "_mips64le",
    "_mipsle", "_ppc64", "_ppc64le", "_riscv64", "_s390x", "_wasm",
)


def create_go_sanitizer() -> NameSanitizer:
    """Create a name sanitizer configured for Go."""
    return NameSanitizer(GO_RESERVED_WORDS, GO_BUILTIN_TYPES)


_sanitizer = create_go_sanitizer()


def go_exported_name(name: str) -> str:
    """Exported Go identifier keeping the source casing: ``valueString`` -> ``ValueString``."""
    return _sanitizer.sanitize_name(upper_first(name), NamingCase.PRESERVE)


def go_file_name(identifier: str) -> str:
    """Source file name for an entity, avoiding suffixes with special meaning."""
    stem = to_snake_case(identifier) or "entity"
    if (
        stem in SUPPORT_FILE_STEMS
        or stem.endswith(GO_SPECIAL_FILE_SUFFIXES)
        or stem.startswith(("_", "."))
    ):
        stem = f"{stem}_type"
    return f"{stem}.go"


def validate_go_package_name(name: str) -> list[str]:
    """
    Validate Go package name according to Go naming rules.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if not name:
        errors.append("Package name cannot be empty")
        return errors

    if not name.isidentifier():
        errors.append(f"'{name}' is not a valid Go identifier")

    if name[0].isupper():
        errors.append("Package names should be lowercase")

    if "-" in name:
        errors.append("Package names should not contain hyphens")

    if name in GO_RESERVED_WORDS:
        errors.append(f"'{name}' is a Go reserved word")

    return errors

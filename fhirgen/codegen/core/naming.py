"""
Naming utilities for safe code generation.

Handles name sanitization, case conversions and keyword conflicts across
target languages. Sanitizers are pure: the same input always yields the same
name, so one sanitizer can be shared by concurrent renders. Callers that need
uniqueness within a scope pass their own ``used`` set to :meth:`unique_name`.
"""

import re
from typing import Dict, Optional, Set, Tuple
from enum import Enum


class NamingCase(Enum):
    """Different naming case styles."""
    SNAKE_CASE = "snake"      # user_name
    PRESERVE = "preserve"     # as declared


def upper_first(value: str) -> str:
    """Uppercase only the first character: ``dateTime`` -> ``DateTime``."""
    return value[:1].upper() + value[1:]


def to_snake_case(name: str) -> str:
    """Convert to snake_case."""
    name = name.replace('-', '_')

    # HTTPRequest -> HTTP_Request, then dateTime -> date_Time
    name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    name = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', name)

    name = name.lower()
    name = re.sub(r'_+', '_', name)

    return name.strip('_')


class NameSanitizer:
    """Handles name sanitization and case conversion."""

    def __init__(self, reserved_words: Optional[Set[str]] = None,
                 builtin_types: Optional[Set[str]] = None):
        """
        Initialize name sanitizer.

        Args:
            reserved_words: Set of language reserved words
            builtin_types: Set of builtin type names that might conflict
        """
        self.reserved_words = frozenset(reserved_words or ())
        self.builtin_types = frozenset(builtin_types or ())
        self._name_cache: Dict[Tuple[str, NamingCase, str], str] = {}

    def sanitize_name(self, name: str, target_case: NamingCase = NamingCase.SNAKE_CASE,
                      suffix_on_conflict: str = "_") -> str:
        """
        Sanitize a name for safe use in target language.

        Args:
            name: Original name to sanitize
            target_case: Desired case style
            suffix_on_conflict: Suffix added when the name is reserved

        Returns:
            Sanitized name safe for use
        """
        cache_key = (name, target_case, suffix_on_conflict)
        cached = self._name_cache.get(cache_key)
        if cached is not None:
            return cached

        cleaned = self._clean_basic(name)
        converted = self.convert_case(cleaned, target_case)
        if not converted:
            converted = "field"
        if converted[0].isdigit():
            converted = f"_{converted}"
        final_name = self._escape_reserved(converted, suffix_on_conflict)

        self._name_cache[cache_key] = final_name
        return final_name

    def unique_name(self, name: str, used: Set[str], suffix: str = "_") -> str:
        """Return ``name`` or a numbered variant not in ``used``, and record it."""
        candidate = name
        counter = 1
        while candidate in used:
            candidate = f"{name}{suffix}{counter}"
            counter += 1
        used.add(candidate)
        return candidate

    def is_reserved(self, name: str) -> bool:
        return name in self.reserved_words or name in self.builtin_types

    def _clean_basic(self, name: str) -> str:
        """Basic name cleanup - remove invalid characters."""
        cleaned = re.sub(r'[^a-zA-Z0-9_-]', '_', name)
        return cleaned.strip('_-')

    @staticmethod
    def convert_case(name: str, target_case: NamingCase) -> str:
        """Convert name to target case style."""
        if target_case == NamingCase.SNAKE_CASE:
            return to_snake_case(name)
        return name

    def _escape_reserved(self, name: str, suffix: str) -> str:
        if self.is_reserved(name):
            return f"{name}{suffix}"
        return name

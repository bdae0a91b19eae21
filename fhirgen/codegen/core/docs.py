"""
Field documentation shared by the language generators.

Describes an IR field as plain comment lines: its short text, its
definition when that says more, and tagged facts (cardinality, modifier
and summary flags, value-set binding). Templates add the comment markers.
"""

import textwrap
from dataclasses import dataclass
from typing import List, Tuple

from .ir import IRField

DEFINITION_WIDTH = 72


def one_line(text: str) -> str:
    """Collapse whitespace so text fits a single comment line."""
    return " ".join((text or "").split())


@dataclass(frozen=True)
class FieldDoc:
    """Documentation of one field, independent of comment syntax."""

    text: Tuple[str, ...]
    tags: Tuple[Tuple[str, str], ...]

    @classmethod
    def from_field(cls, ir_field: IRField, heading: str = "") -> "FieldDoc":
        """
        Describe a field.

        Args:
            ir_field: Field to describe
            heading: Line placed before the short text, e.g. the choice
                alternative a generated member stands for
        """
        text = [line for line in (one_line(heading), one_line(ir_field.short)) if line]
        definition = one_line(ir_field.definition)
        if definition and definition != one_line(ir_field.short):
            text.extend(textwrap.wrap(definition, width=DEFINITION_WIDTH))

        tags = [("cardinality", str(ir_field.cardinality))]
        if ir_field.is_modifier:
            tags.append(("modifier", "This element is a modifier element"))
        if ir_field.is_summary:
            tags.append(("summary", "This element is a summary element"))
        binding = ir_field.binding
        if binding is not None:
            target = one_line(binding.value_set) or one_line(binding.description) or "unspecified"
            tags.append(("binding", f"{binding.strength.value} {target}"))
        return cls(tuple(text), tuple(tags))

    def lines(self, tag_format: str = "{0}: {1}") -> List[str]:
        """Text lines followed by one line per tag, formatted with ``tag_format``."""
        return list(self.text) + [tag_format.format(name, value) for name, value in self.tags]

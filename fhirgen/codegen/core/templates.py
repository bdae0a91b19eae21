"""
Template engine wrapper for code generation.

Provides a simple interface for Jinja2 template rendering
with common utilities for code generation.
"""

import textwrap
from typing import Dict, Any, Optional
from pathlib import Path

from jinja2 import (
    DictLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError as JinjaTemplateError,
)


class TemplateError(Exception):
    """Exception raised for template-related errors."""

    pass


class TemplateEngine:
    """Wrapper for Jinja2 template engine with code generation utilities."""

    def __init__(self, template_dir: Optional[Path] = None):
        """
        Initialize template engine.

        Args:
            template_dir: Directory containing template files
        """
        self.template_dir = template_dir
        self._env = None
        self._setup_environment()

    def _setup_environment(self):
        """Setup Jinja2 environment with code generation utilities."""
        if self.template_dir and self.template_dir.exists():
            loader = FileSystemLoader(str(self.template_dir))
        else:
            loader = DictLoader({})

        # Generated source is not markup, so no autoescaping
        self._env = Environment(
            loader=loader,
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

        self._env.filters["indent_lines"] = self._indent_filter
        self._env.filters["comment"] = self._comment_filter
        self._env.filters["wrap"] = self._wrap_filter

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Render a template with the given context.

        Args:
            template_name: Name of template file
            context: Variables to pass to template

        Returns:
            Rendered template content
        """
        try:
            template = self._env.get_template(template_name)
            return template.render(**context)
        except JinjaTemplateError as e:
            raise TemplateError(
                f"Failed to render template {template_name}: {e}"
            ) from e

    def template_exists(self, template_name: str) -> bool:
        """Check if a template can be loaded."""
        return template_name in self._env.loader.list_templates()

    # Template filters for code generation

    def _indent_filter(self, value: str, spaces: int = 4) -> str:
        """Indent all non-blank lines in a string."""
        indent = " " * spaces
        lines = str(value).split("\n")
        return "\n".join(indent + line if line.strip() else line for line in lines)

    def _comment_filter(self, value: str, style: str = "//") -> str:
        """Add comment markers to each line."""
        lines = str(value).split("\n")
        return "\n".join(f"{style} {line}" if line.strip() else style for line in lines)

    def _wrap_filter(self, value: str, width: int = 76) -> str:
        """Re-flow documentation text, keeping paragraph breaks."""
        paragraphs = [p.strip() for p in str(value).strip().split("\n\n")]
        wrapped = [
            textwrap.fill(" ".join(p.split()), width=width) for p in paragraphs if p
        ]
        return "\n\n".join(wrapped)


def create_template_engine(template_dir: Optional[Path] = None) -> TemplateEngine:
    """
    Create a template engine instance.

    Args:
        template_dir: Directory containing templates

    Returns:
        Configured template engine
    """
    return TemplateEngine(template_dir)

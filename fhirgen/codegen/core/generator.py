"""
Base generator interface for all code generation targets.

Defines the contract that all language generators must implement: an IR
goes in, an ordered list of :class:`GeneratedFile` comes out. Rendering
never touches the filesystem; writing is the emitter's job.
"""

import hashlib
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple

from ...logging_config import get_logger
from .config import GeneratorConfig
from .ir import IR, IREntity
from .templates import TemplateEngine, TemplateError, create_template_engine

logger = get_logger(__name__)


class GenerationError(Exception):
    """Base exception for code generation errors."""

    def __init__(self, message: str, language: Optional[str] = None):
        self.language = language
        super().__init__(message)


class UnsupportedConstruct(GenerationError):
    """A generator cannot represent an entity."""

    def __init__(self, entity: str, reason: str, language: Optional[str] = None):
        self.entity = entity
        self.reason = reason
        prefix = f"[{language}] " if language else ""
        super().__init__(f"{prefix}Cannot generate {entity}: {reason}", language)


class DuplicatePath(GenerationError):
    """Two generated files target the same output path."""

    def __init__(self, path: str, language: Optional[str] = None):
        self.path = path
        prefix = f"[{language}] " if language else ""
        super().__init__(f"{prefix}Duplicate output path: {path}", language)


class InvalidOutputPath(GenerationError):
    """A generated file path is absolute, escapes the output root, or is malformed."""

    def __init__(self, path: str, reason: str, language: Optional[str] = None):
        self.path = path
        self.reason = reason
        prefix = f"[{language}] " if language else ""
        super().__init__(f"{prefix}Invalid output path {path!r}: {reason}", language)


class ContentKind(Enum):
    """What a generated file holds."""

    TYPE_DEFINITION = "type-definition"
    INDEX = "index"
    HELPER = "helper"
    MANIFEST = "manifest"


@dataclass(frozen=True)
class GeneratedFile:
    """A rendered file, addressed by a relative POSIX path."""

    path: str
    content: bytes
    kind: ContentKind = ContentKind.TYPE_DEFINITION
    entity: Optional[str] = None

    @classmethod
    def from_text(
        cls,
        path: str,
        text: str,
        kind: ContentKind = ContentKind.TYPE_DEFINITION,
        entity: Optional[str] = None,
    ) -> "GeneratedFile":
        return cls(path, text.encode("utf-8"), kind, entity)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.content).hexdigest()


@dataclass(frozen=True)
class GeneratorDescriptor:
    """Static metadata describing a generator; available without instantiation."""

    language: str
    display_name: str
    file_extension: str
    aliases: Tuple[str, ...] = ()
    features: Tuple[str, ...] = ()
    description: str = ""
    example_usage: str = ""
    choice_policy: str = ""


def validate_relative_path(path: str, language: Optional[str] = None) -> str:
    """Return ``path`` if it is a clean relative POSIX path inside the output root."""
    if not path or not isinstance(path, str):
        raise InvalidOutputPath(str(path), "empty path", language)
    if "\\" in path or "\x00" in path:
        raise InvalidOutputPath(path, "must use '/' separators only", language)
    posix = PurePosixPath(path)
    if posix.is_absolute() or path.startswith("/"):
        raise InvalidOutputPath(path, "must be relative", language)
    parts = path.split("/")
    if any(part in ("", ".", "..") for part in parts):
        raise InvalidOutputPath(path, "must not contain empty, '.' or '..' segments", language)
    return path


def check_output_paths(files: Iterable[GeneratedFile], language: Optional[str] = None):
    """
    Validate a file set before anything is written.

    Raises:
        InvalidOutputPath: A path is malformed, or a file path is also used
            as a directory by another file
        DuplicatePath: Two files share a path
    """
    seen = set()
    directories = set()
    for generated in files:
        path = validate_relative_path(generated.path, language)
        if path in seen:
            raise DuplicatePath(path, language)
        seen.add(path)
        parts = path.split("/")
        for depth in range(1, len(parts)):
            directories.add("/".join(parts[:depth]))

    clashes = sorted(seen & directories)
    if clashes:
        raise InvalidOutputPath(clashes[0], "used both as a file and a directory", language)


class CodeGenerator(ABC):
    """Abstract base class for all code generators."""

    descriptor: ClassVar[GeneratorDescriptor]

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """Initialize generator with optional configuration."""
        self.config = config or GeneratorConfig()
        self._template_engine = None
        self._setup_templates()

    def _setup_templates(self):
        """Setup template engine for this generator."""
        self._template_engine = create_template_engine(self.get_template_directory())

    @property
    def language_name(self) -> str:
        """Return the name of the target language (e.g., 'go', 'python')."""
        return self.descriptor.language

    @property
    def file_extension(self) -> str:
        """Return the file extension for generated files (e.g., '.go', '.py')."""
        return self.descriptor.file_extension

    def get_template_directory(self) -> Optional[Path]:
        """
        Return the directory containing templates for this generator.

        Subclasses should override this to provide their template directory.
        Return None to use in-memory templates only.
        """
        return None

    @property
    def template_engine(self) -> TemplateEngine:
        """Get the template engine for this generator."""
        if self._template_engine is None:
            self._setup_templates()
        return self._template_engine

    @abstractmethod
    def generate_entity(self, entity: IREntity, ir: IR) -> List[GeneratedFile]:
        """
        Render one entity.

        Args:
            entity: Entity to render
            ir: Whole IR, for base and referenced entities

        Returns:
            Files defining this entity (at least one)

        Raises:
            UnsupportedConstruct: If the language cannot represent the entity
        """

    def generate_support_files(self, ir: IR) -> List[GeneratedFile]:
        """Index, helper and manifest files. Default: none."""
        return []

    def generate(self, ir: IR) -> List[GeneratedFile]:
        """
        Generate files for every entity of the IR.

        Entities are rendered in identifier order and results are collected
        in that order whatever the worker count, so output is reproducible.

        Returns:
            Entity files followed by support files

        Raises:
            GenerationError: UnsupportedConstruct, DuplicatePath or InvalidOutputPath
        """
        entities = [ir.get(identifier) for identifier in sorted(ir.entities)]
        workers = max(1, int(self.config.max_workers or 1))
        logger.debug(
            "Rendering %d entities for %s with %d worker(s)",
            len(entities),
            self.language_name,
            workers,
        )

        if workers > 1 and len(entities) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                rendered = list(pool.map(lambda e: self._render_entity(e, ir), entities))
        else:
            rendered = [self._render_entity(entity, ir) for entity in entities]

        files: List[GeneratedFile] = []
        for entity_files in rendered:
            files.extend(entity_files)
        files.extend(self.generate_support_files(ir))

        check_output_paths(files, self.language_name)
        logger.info("Generated %d %s file(s)", len(files), self.language_name)
        return files

    def _render_entity(self, entity: IREntity, ir: IR) -> List[GeneratedFile]:
        files = self.generate_entity(entity, ir)
        if not files:
            raise UnsupportedConstruct(
                entity.identifier, "generator produced no output", self.language_name
            )
        return files

    def validate_ir(self, ir: IR) -> List[str]:
        """
        Check the IR for things that render but deserve a warning.

        Language generators may override this to add their own checks.

        Returns:
            List of warning messages (empty if no issues)
        """
        warnings = [diagnostic.message for diagnostic in ir.diagnostics]
        for entity in ir:
            if not entity.fields and not entity.base:
                warnings.append(f"Entity '{entity.identifier}' has no fields")
        return warnings

    def format_code(self, code: str) -> str:
        """
        Normalize whitespace in rendered code.

        Strips trailing whitespace, allows at most two consecutive blank
        lines, drops leading blank lines and ends the file with one newline.
        """
        formatted_lines = []
        blank_count = 0

        for line in code.split("\n"):
            stripped = line.rstrip()
            if not stripped:
                blank_count += 1
                if blank_count <= 2 and formatted_lines:
                    formatted_lines.append("")
            else:
                blank_count = 0
                formatted_lines.append(stripped)

        while formatted_lines and not formatted_lines[-1]:
            formatted_lines.pop()
        return "\n".join(formatted_lines) + "\n"

    def make_file(
        self,
        path: str,
        code: str,
        kind: ContentKind = ContentKind.TYPE_DEFINITION,
        entity: Optional[str] = None,
    ) -> GeneratedFile:
        """Format rendered code and wrap it as a GeneratedFile."""
        return GeneratedFile.from_text(path, self.format_code(code), kind, entity)

    # Template helper methods

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render a template with context; template failures become GenerationError."""
        try:
            return self.template_engine.render_template(template_name, context)
        except TemplateError as e:
            raise GenerationError(str(e), self.language_name) from e

    def template_exists(self, template_name: str) -> bool:
        """Check if a template exists."""
        return self.template_engine.template_exists(template_name)


@dataclass
class GenerationResult:
    """Container for generation results and metadata."""

    files: List[GeneratedFile]
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def paths(self) -> List[str]:
        return [generated.path for generated in self.files]


def generate_code(generator: CodeGenerator, ir: IR) -> GenerationResult:
    """
    Generate code with the specified generator and collect metadata.

    Args:
        generator: Code generator instance
        ir: Built IR

    Returns:
        GenerationResult with files, warnings, and metadata

    Raises:
        GenerationError: Propagated from the generator
    """
    warnings = generator.validate_ir(ir)
    for warning in warnings:
        logger.debug("%s: %s", generator.language_name, warning)

    files = generator.generate(ir)

    metadata = {
        "language": generator.language_name,
        "file_extension": generator.file_extension,
        "entity_count": len(ir),
        "file_count": len(files),
        "packages": list(ir.packages),
    }
    return GenerationResult(files, warnings, metadata)

"""
End-to-end generation: packages in, files on disk out.

The pipeline runs three phases. *build* turns schema packages into one IR
and aborts the whole run on error. *generate* renders the IR for a target
language; its errors only affect that language. *emit* writes the files;
per-file write errors are collected in the :class:`WriteReport`.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..logging_config import get_logger
from .core.config import GeneratorConfig
from .core.emitter import EmitError, Emitter, WriteReport
from .core.generator import CodeGenerator, GenerationError, GenerationResult, generate_code
from .core.ir import IR, BuildOptions, build_ir
from .core.schema import Package
from .registry import describe_generator, get_registry, list_generators

logger = get_logger(__name__)

ConfigSource = Optional[Union[GeneratorConfig, Dict[str, Any], str, Path]]

PHASE_GENERATE = "generate"
PHASE_EMIT = "emit"
PHASE_DONE = "done"


@dataclass
class LanguageResult:
    """Outcome of one language in a multi-language run."""

    language: str
    phase: str
    report: Optional[WriteReport] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.report is not None and self.report.success


@dataclass
class RunReport:
    """Outcome of a multi-language run, one result per requested language."""

    output_root: Path
    results: List[LanguageResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results)

    def get(self, language: str) -> Optional[LanguageResult]:
        for result in self.results:
            if result.language == language:
                return result
        return None

    def failures(self) -> List[Tuple[str, str, str]]:
        """Every failure as ``(phase, language, message)``."""
        failures = []
        for result in self.results:
            if result.error is not None:
                failures.append((result.phase, result.language, str(result.error)))
            elif result.report is not None:
                for failure in result.report.failures:
                    failures.append((PHASE_EMIT, result.language, str(failure)))
        return failures


def _create_generator(language: str, config: ConfigSource) -> CodeGenerator:
    return get_registry().create_generator(language, config)


def _emit(
    generator: CodeGenerator, result: GenerationResult, output_root: Union[str, Path]
) -> WriteReport:
    emitter = Emitter(
        clean=generator.config.clean_output, max_workers=generator.config.max_workers
    )
    return emitter.emit(result.files, output_root, result.metadata)


def preview(
    packages: Iterable[Package],
    language: str,
    config: ConfigSource = None,
    options: Optional[BuildOptions] = None,
) -> GenerationResult:
    """Build and generate without touching the filesystem."""
    generator = _create_generator(language, config)
    ir = build_ir(packages, options)
    return generate_code(generator, ir)


def run_generation(
    packages: Iterable[Package],
    language: str,
    output_root: Union[str, Path],
    config: ConfigSource = None,
    options: Optional[BuildOptions] = None,
) -> WriteReport:
    """
    Generate one language and write it under ``output_root``.

    Args:
        packages: Schema packages in precedence order
        language: Language id or alias
        output_root: Directory owned by this run
        config: GeneratorConfig, override dict, or config file path
        options: IR build options

    Returns:
        WriteReport of the emit phase

    Raises:
        UnknownGenerator: If the language is not registered
        BuildError: If the packages do not form a valid IR
        GenerationError: If the generator fails
        EmitError: If the output root is not owned by fhirgen
    """
    generator = _create_generator(language, config)
    ir = build_ir(packages, options)
    result = generate_code(generator, ir)
    report = _emit(generator, result, output_root)
    if report.success:
        logger.info("Wrote %d file(s) to %s", len(report.written), report.output_root)
    else:
        logger.warning(
            "%d of %d file(s) failed under %s",
            len(report.failures),
            len(result.files),
            report.output_root,
        )
    return report


def _run_language(
    ir: IR, language: str, output_root: Path, config: ConfigSource
) -> LanguageResult:
    phase = PHASE_GENERATE
    try:
        generator = _create_generator(language, config)
        result = generate_code(generator, ir)
        phase = PHASE_EMIT
        report = _emit(generator, result, output_root / generator.language_name)
    except (GenerationError, EmitError, OSError) as e:
        logger.error("%s failed during %s: %s", language, phase, e)
        return LanguageResult(language, phase, error=e)
    except Exception as e:
        # Sibling languages keep running; the traceback goes to the log
        logger.exception("%s failed unexpectedly during %s", language, phase)
        return LanguageResult(language, phase, error=e)
    return LanguageResult(language, PHASE_DONE if report.success else PHASE_EMIT, report)


def run_generation_many(
    packages: Iterable[Package],
    languages: Sequence[str],
    output_root: Union[str, Path],
    config: ConfigSource = None,
    options: Optional[BuildOptions] = None,
    max_workers: Optional[int] = None,
    configs: Optional[Mapping[str, GeneratorConfig]] = None,
) -> RunReport:
    """
    Build the IR once and generate several languages from it.

    Each language is written under ``output_root/<language id>``. A failing
    language is recorded in its result and does not stop the others.
    Unknown languages and build errors are raised before anything runs.

    ``configs`` maps language ids to their own configuration and takes
    precedence over ``config``.
    """
    registry = get_registry()
    resolved = []
    for language in languages:
        language_key = registry.resolve_language(language)
        if language_key not in resolved:
            resolved.append(language_key)

    per_language = {
        registry.resolve_language(key): value for key, value in (configs or {}).items()
    }
    ir = build_ir(packages, options)
    root = Path(output_root)

    def run_one(language: str) -> LanguageResult:
        return _run_language(ir, language, root, per_language.get(language, config))

    workers = max_workers or len(resolved) or 1
    if workers > 1 and len(resolved) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(run_one, resolved))
    else:
        results = [run_one(language) for language in resolved]

    run = RunReport(root, results)
    if run.success:
        logger.info("Generated %s under %s", ", ".join(resolved), root)
    return run


__all__ = [
    "LanguageResult",
    "RunReport",
    "describe_generator",
    "list_generators",
    "preview",
    "run_generation",
    "run_generation_many",
]

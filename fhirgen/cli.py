"""
Command-line interface for fhirgen.

Subcommands:
    list                   List the registered generators
    describe LANGUAGE      Show a generator's descriptor and default config
    inspect PACKAGE...     Build the IR and summarize it
    generate PACKAGE...    Generate code for one or more languages
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .codegen import (
    BuildError,
    BuildOptions,
    ConfigError,
    EmitError,
    GenerationError,
    GeneratorConfig,
    Package,
    RegistryError,
    SchemaError,
    build_ir,
    describe_generator,
    get_registry,
    list_generators,
    load_config,
    preview,
    run_generation,
    run_generation_many,
)
from .codegen.core.config import get_config_manager
from .loader import PackageLoadError, load_packages
from .logging_config import get_logger, setup_logging

logger = get_logger(__name__)

# Errors reported to the user with the phase they belong to
PHASE_ERRORS = (
    ((PackageLoadError, SchemaError), "input"),
    ((BuildError,), "build"),
    ((GenerationError,), "generate"),
    ((EmitError,), "emit"),
    ((RegistryError, ConfigError), "request"),
)


class CLIHandler:
    """Handle the fhirgen subcommands."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def run(self, args: argparse.Namespace) -> int:
        """Dispatch a parsed command line.

        Returns:
            Exit code (0 for success, 1 for failure).
        """
        handler = getattr(self, f"_cmd_{args.command}")
        try:
            return handler(args)
        except tuple(cls for group, _ in PHASE_ERRORS for cls in group) as e:
            self._print_error(self._phase_of(e), str(e))
            logger.debug("Command %s failed", args.command, exc_info=True)
            return 1

    @staticmethod
    def _phase_of(error: Exception) -> str:
        for classes, phase in PHASE_ERRORS:
            if isinstance(error, classes):
                return phase
        return "unknown"

    def _print_error(self, phase: str, message: str) -> None:
        self.console.print(f"[red]✗ {phase} error:[/red] {escape(message)}")

    # list / describe

    def _cmd_list(self, args: argparse.Namespace) -> int:
        descriptors = list_generators()
        table = Table(title="📋 Generators", box=box.ROUNDED, title_style="bold cyan")
        table.add_column("Language", style="bold green", no_wrap=True)
        table.add_column("Name")
        table.add_column("Extension", style="cyan")
        table.add_column("Aliases", style="blue")
        table.add_column("Description", style="dim")

        for descriptor in descriptors:
            aliases = ", ".join(descriptor.aliases) if descriptor.aliases else "[dim]none[/dim]"
            table.add_row(
                descriptor.language,
                descriptor.display_name,
                descriptor.file_extension,
                aliases,
                descriptor.description,
            )

        self.console.print(table)
        self.console.print(
            Panel(
                "[bold]Generate:[/bold] fhirgen generate [dim]package.json[/dim] "
                "-l [cyan]LANGUAGE[/cyan] -o [dim]out/[/dim]\n"
                "[bold]Details:[/bold] fhirgen describe [cyan]LANGUAGE[/cyan]",
                title="💡 Quick Start",
                border_style="blue",
            )
        )
        return 0

    def _cmd_describe(self, args: argparse.Namespace) -> int:
        descriptor = describe_generator(args.language)
        info = get_registry().get_language_info(args.language)

        info_text = (
            f"[bold]Language:[/bold] {descriptor.language}\n"
            f"[bold]File Extension:[/bold] {descriptor.file_extension}\n"
            f"[bold]Generator Class:[/bold] {info['class']}\n"
            f"[bold]Module:[/bold] {info['module']}"
        )
        if descriptor.aliases:
            info_text += f"\n[bold]Aliases:[/bold] {', '.join(descriptor.aliases)}"
        if descriptor.description:
            info_text += f"\n\n{descriptor.description}"
        self.console.print(
            Panel(info_text, title=f"🔧 {descriptor.display_name} Generator", border_style="green")
        )

        if descriptor.features:
            features = Table(box=box.SIMPLE, show_header=False)
            features.add_column("Feature")
            for feature in descriptor.features:
                features.add_row(f"• {feature}")
            self.console.print(features)

        if descriptor.choice_policy:
            self.console.print(
                Panel(descriptor.choice_policy, title="Choice fields", border_style="cyan")
            )

        config = load_config(descriptor.language)
        config_table = Table(
            title="⚙️  Default Configuration",
            box=box.SIMPLE,
            show_header=True,
            header_style="bold cyan",
        )
        config_table.add_column("Setting", style="bold")
        config_table.add_column("Value", style="green")
        config_table.add_row("package_name", config.package_name or "[dim]-[/dim]")
        config_table.add_row("indent_size", str(config.indent_size))
        config_table.add_row("add_comments", str(config.add_comments))
        config_table.add_row("clean_output", str(config.clean_output))
        for key, value in sorted(config.language_config.items()):
            config_table.add_row(key, str(value))
        self.console.print(config_table)

        if descriptor.example_usage:
            self.console.print(
                Panel(f"[cyan]{descriptor.example_usage}[/cyan]", title="💡 Usage", border_style="blue")
            )
        return 0

    # inspect

    def _load(self, sources: list[str]) -> list[Package]:
        packages: list[Package] = []
        for source in sources:
            packages.extend(load_packages(source))
        return packages

    def _build_options(self, args: argparse.Namespace) -> BuildOptions:
        return BuildOptions(roots=tuple(args.root) if args.root else None)

    def _cmd_inspect(self, args: argparse.Namespace) -> int:
        packages = self._load(args.packages)
        ir = build_ir(packages, self._build_options(args))

        table = Table(
            title=f"🧬 IR from {', '.join(ir.packages)}",
            box=box.ROUNDED,
            title_style="bold cyan",
        )
        table.add_column("Entity", style="bold green", no_wrap=True)
        table.add_column("Kind", style="cyan")
        table.add_column("Base", style="blue")
        table.add_column("Fields", justify="right")
        table.add_column("Packages", style="dim")
        for identifier in ir.order:
            entity = ir.get(identifier)
            table.add_row(
                identifier,
                entity.kind.value,
                entity.base or "",
                str(len(entity.fields)),
                ", ".join(entity.packages),
            )
        self.console.print(table)

        summary = ", ".join(f"{count} {kind}" for kind, count in ir.summary().items())
        self.console.print(f"📊 {len(ir)} entities ({summary or 'none'})")
        for diagnostic in ir.diagnostics:
            self.console.print(
                f"[yellow]⚠️  {diagnostic.code}:[/yellow] {escape(diagnostic.message)}"
            )
        return 0

    # generate

    def _overrides(self, args: argparse.Namespace) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if args.package_name:
            overrides["package_name"] = args.package_name
        if args.no_clean:
            overrides["clean_output"] = False
        if args.no_comments:
            overrides["add_comments"] = False
        if args.workers:
            overrides["max_workers"] = args.workers
        return overrides

    def _configs(self, args: argparse.Namespace, languages: list[str]) -> dict[str, GeneratorConfig]:
        manager = get_config_manager()
        overrides = self._overrides(args)
        configs = {}
        for language in languages:
            config = manager.get_config(language, overrides, args.config)
            for warning in manager.validate_config(config, language):
                self.console.print(f"[yellow]⚠️  {language}:[/yellow] {escape(warning)}")
            configs[language] = config
        return configs

    def _cmd_generate(self, args: argparse.Namespace) -> int:
        registry = get_registry()
        languages: list[str] = []
        for language in args.language:
            language_key = registry.resolve_language(language)
            if language_key not in languages:
                languages.append(language_key)

        configs = self._configs(args, languages)
        packages = self._load(args.packages)
        options = self._build_options(args)

        if args.dry_run:
            for language in languages:
                self._print_preview(language, preview(packages, language, configs[language], options))
            return 0

        output = Path(args.output)
        if len(languages) == 1:
            language = languages[0]
            report = run_generation(packages, language, output, configs[language], options)
            self._print_report(language, report.written, [str(f) for f in report.failures], output)
            return 0 if report.success else 1

        run = run_generation_many(packages, languages, output, options=options, configs=configs)
        for result in run.results:
            if result.error is not None:
                self._print_error(result.phase, f"[{result.language}] {result.error}")
            elif result.report is not None:
                self._print_report(
                    result.language,
                    result.report.written,
                    [str(f) for f in result.report.failures],
                    result.report.output_root,
                )
        return 0 if run.success else 1

    def _print_preview(self, language: str, result: Any) -> None:
        table = Table(title=f"🔍 {language} (dry run)", box=box.SIMPLE, header_style="bold cyan")
        table.add_column("Path", style="green")
        table.add_column("Kind", style="cyan")
        table.add_column("Bytes", justify="right")
        for generated in result.files:
            table.add_row(generated.path, generated.kind.value, str(len(generated.content)))
        self.console.print(table)
        for warning in result.warnings:
            self.console.print(f"[yellow]⚠️  {escape(warning)}[/yellow]")

    def _print_report(
        self, language: str, written: list[str], failures: list[str], root: Path
    ) -> None:
        if failures:
            self.console.print(
                f"[red]✗ {language}:[/red] {len(failures)} file(s) failed under {root}"
            )
            for failure in failures:
                self.console.print(f"  [red]emit:[/red] {escape(failure)}")
            return
        self.console.print(
            f"[green]✓ {language}:[/green] wrote {len(written)} file(s) to {root}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fhirgen",
        description="Generate typed models from FHIR schema packages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fhirgen list
  fhirgen describe go
  fhirgen inspect core.json
  fhirgen generate core.json -l typescript -o out/
  fhirgen generate core.json profiles/ -l go -l python -o out/ --workers 4
        """.strip(),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Log level (default: FHIRGEN_LOG_LEVEL or WARNING)",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG"
    )
    parser.add_argument("--log-file", metavar="FILE", help="Also write logs to FILE")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List available generators")

    describe = subparsers.add_parser("describe", help="Show details about a generator")
    describe.add_argument("language", help="Language id or alias")

    def add_package_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "packages", nargs="+", metavar="PACKAGE", help="Package file, directory or URL"
        )
        sub.add_argument(
            "--root",
            action="append",
            metavar="ID",
            help="Keep only entities reachable from ID (repeatable)",
        )

    inspect = subparsers.add_parser("inspect", help="Build the IR and summarize it")
    add_package_args(inspect)

    generate = subparsers.add_parser("generate", help="Generate code")
    add_package_args(generate)
    generate.add_argument(
        "--language",
        "-l",
        action="append",
        required=True,
        metavar="LANGUAGE",
        help="Target language (repeatable)",
    )
    generate.add_argument(
        "--output",
        "-o",
        required=True,
        metavar="DIR",
        help="Output directory (one subdirectory per language when several are given)",
    )
    generate.add_argument("--config", metavar="FILE", help="JSON configuration file")
    generate.add_argument("--package-name", metavar="NAME", help="Generated package name")
    generate.add_argument(
        "--no-clean", action="store_true", help="Write in place instead of rebuilding DIR"
    )
    generate.add_argument(
        "--no-comments", action="store_true", help="Don't add comments to generated code"
    )
    generate.add_argument("--workers", type=int, metavar="N", help="Render with N threads")
    generate.add_argument(
        "--dry-run", action="store_true", help="List the files without writing them"
    )
    return parser


def _log_level(args: argparse.Namespace) -> str | None:
    if args.log_level:
        return args.log_level
    if args.verbose >= 2:
        return "DEBUG"
    if args.verbose == 1:
        return "INFO"
    return None


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``fhirgen`` console script."""
    args = build_parser().parse_args(argv)
    setup_logging(_log_level(args), args.log_file)
    logger.debug("Running %s", args.command)
    return CLIHandler().run(args)


if __name__ == "__main__":
    sys.exit(main())

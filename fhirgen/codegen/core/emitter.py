"""
Writes generated files to disk.

The emitter owns one output root. In clean mode the whole tree is rebuilt in
a staging directory beside the root and swapped in only when every file was
written, so a failed run leaves the previous tree untouched. Every file is
written to a temporary name, fsynced and renamed into place.

A manifest (``.fhirgen-manifest.json``) listing each path and its SHA-256
marks a directory as generator-owned; an existing non-empty directory without
it is never cleared.
"""

import json
import os
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ...logging_config import get_logger
from .generator import GeneratedFile, check_output_paths

logger = get_logger(__name__)

MANIFEST_NAME = ".fhirgen-manifest.json"


class EmitError(Exception):
    """Raised when output cannot be written or a run must be refused."""

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        failures: Sequence["FileWriteFailure"] = (),
    ):
        self.path = str(path) if path is not None else None
        self.failures = tuple(failures)
        super().__init__(message)


@dataclass(frozen=True)
class FileWriteFailure:
    """One file that could not be written."""

    path: str
    error: str

    def __str__(self) -> str:
        return f"{self.path}: {self.error}"


@dataclass
class WriteReport:
    """Outcome of an emit: what was written and what failed."""

    output_root: Path
    written: List[str] = field(default_factory=list)
    failures: List[FileWriteFailure] = field(default_factory=list)
    clean: bool = True

    @property
    def success(self) -> bool:
        return not self.failures

    def raise_for_failures(self):
        """Raise an EmitError summarizing every failure, if any."""
        if self.failures:
            details = "; ".join(str(failure) for failure in self.failures)
            raise EmitError(
                f"{len(self.failures)} file(s) failed under {self.output_root}: {details}",
                self.output_root,
                self.failures,
            )


def _write_atomic(target: Path, content: bytes):
    """Write bytes to a temp file beside ``target``, fsync, then rename over it."""
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(f".{target.name}.tmp")
    try:
        with open(tmp, "wb") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, target)
    except OSError:
        if tmp.exists():
            tmp.unlink()
        raise


def read_manifest(output_root: Union[str, Path]) -> Optional[Dict[str, Any]]:
    """Return the manifest of a previous run, or None if there is none."""
    path = Path(output_root) / MANIFEST_NAME
    if not path.is_file():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise EmitError(f"Unreadable manifest {path}: {e}", path) from e


def build_manifest(
    files: Iterable[GeneratedFile], metadata: Optional[Dict[str, Any]] = None
) -> bytes:
    entries = sorted(
        ({"path": generated.path, "sha256": generated.sha256} for generated in files),
        key=lambda entry: entry["path"],
    )
    manifest = {"generator": "fhirgen", **(metadata or {}), "files": entries}
    return (json.dumps(manifest, indent=2, sort_keys=True) + "\n").encode("utf-8")


class Emitter:
    """Writes a set of generated files under one output root."""

    def __init__(self, clean: bool = True, max_workers: int = 1):
        self.clean = clean
        self.max_workers = max(1, int(max_workers or 1))

    def emit(
        self,
        files: Sequence[GeneratedFile],
        output_root: Union[str, Path],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> WriteReport:
        """
        Write files under ``output_root``.

        Args:
            files: Files to write; paths are validated before any I/O
            output_root: Directory that receives the tree
            metadata: Extra keys recorded in the manifest (e.g. language)

        Returns:
            WriteReport with per-file failures

        Raises:
            DuplicatePath, InvalidOutputPath: Invalid file set
            EmitError: The root cannot be prepared or swapped
        """
        files = list(files)
        check_output_paths(files)
        for generated in files:
            if generated.path == MANIFEST_NAME:
                raise EmitError(f"{MANIFEST_NAME} is reserved", generated.path)

        root = Path(output_root).absolute()
        if root.exists() and not root.is_dir():
            raise EmitError(f"Output root is not a directory: {root}", root)
        if root.is_symlink() and not root.exists():
            raise EmitError(f"Output root is a dangling symlink: {root}", root)

        if self.clean:
            return self._emit_clean(files, root, metadata)
        return self._emit_in_place(files, root, metadata)

    def _emit_clean(
        self, files: List[GeneratedFile], root: Path, metadata: Optional[Dict[str, Any]]
    ) -> WriteReport:
        self._check_owned(root)
        try:
            root.parent.mkdir(parents=True, exist_ok=True)
            holder = Path(
                tempfile.mkdtemp(prefix=f".{root.name}.", suffix=".staging", dir=root.parent)
            )
        except OSError as e:
            raise EmitError(f"Cannot create a staging directory for {root}: {e}", root) from e

        # mkdtemp is owner-only; the tree itself is created under the umask
        staging = holder / root.name
        logger.debug("Staging %d file(s) in %s", len(files), staging)

        report = WriteReport(root, clean=True)
        try:
            staging.mkdir()
            report.failures = self._write_all(files, staging)
            if report.failures:
                logger.error(
                    "%d file(s) failed; keeping previous contents of %s",
                    len(report.failures),
                    root,
                )
                return report
            _write_atomic(staging / MANIFEST_NAME, build_manifest(files, metadata))
            self._swap(staging, root)
        except OSError as e:
            raise EmitError(f"Failed to stage output for {root}: {e}", root) from e
        finally:
            shutil.rmtree(holder, ignore_errors=True)

        report.written = sorted(generated.path for generated in files)
        logger.info("Wrote %d file(s) to %s", len(report.written), root)
        return report

    def _emit_in_place(
        self, files: List[GeneratedFile], root: Path, metadata: Optional[Dict[str, Any]]
    ) -> WriteReport:
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EmitError(f"Cannot create output root {root}: {e}", root) from e
        report = WriteReport(root, clean=False)
        report.failures = self._write_all(files, root)
        failed = {failure.path for failure in report.failures}
        report.written = sorted(g.path for g in files if g.path not in failed)

        if report.failures:
            logger.error("%d file(s) failed under %s", len(report.failures), root)
            return report
        try:
            _write_atomic(root / MANIFEST_NAME, build_manifest(files, metadata))
        except OSError as e:
            report.failures.append(FileWriteFailure(MANIFEST_NAME, str(e)))
            logger.error("Failed to write %s under %s: %s", MANIFEST_NAME, root, e)
            return report
        logger.info("Wrote %d file(s) to %s", len(report.written), root)
        return report

    def _write_all(self, files: List[GeneratedFile], base: Path) -> List[FileWriteFailure]:
        def write_one(generated: GeneratedFile) -> Optional[FileWriteFailure]:
            try:
                _write_atomic(base / generated.path, generated.content)
            except OSError as e:
                logger.warning("Failed to write %s: %s", generated.path, e)
                return FileWriteFailure(generated.path, str(e))
            return None

        if self.max_workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(write_one, files))
        else:
            results = [write_one(generated) for generated in files]
        return [failure for failure in results if failure is not None]

    @staticmethod
    def _check_owned(root: Path):
        """Refuse to replace a non-empty directory this tool did not create."""
        if not root.exists():
            return
        if (root / MANIFEST_NAME).is_file():
            return
        try:
            populated = any(root.iterdir())
        except OSError as e:
            raise EmitError(f"Cannot inspect output root {root}: {e}", root) from e
        if populated:
            raise EmitError(
                f"Refusing to clean {root}: directory is not empty and has no "
                f"{MANIFEST_NAME} from a previous run",
                root,
            )

    @staticmethod
    def _swap(staging: Path, root: Path):
        if not root.exists():
            os.replace(staging, root)
            return
        backup = Path(tempfile.mkdtemp(prefix=f".{root.name}.", suffix=".old", dir=root.parent))
        backup.rmdir()
        os.replace(root, backup)
        try:
            os.replace(staging, root)
        except OSError as e:
            os.replace(backup, root)
            raise EmitError(f"Failed to replace {root}: {e}", root) from e
        shutil.rmtree(backup)


def emit(
    files: Sequence[GeneratedFile],
    output_root: Union[str, Path],
    clean: bool = True,
    max_workers: int = 1,
    metadata: Optional[Dict[str, Any]] = None,
) -> WriteReport:
    """Convenience function: write files with a fresh Emitter."""
    return Emitter(clean=clean, max_workers=max_workers).emit(files, output_root, metadata)

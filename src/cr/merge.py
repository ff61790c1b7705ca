"""Merging of Cucumber JSON result files.

Each result file is expected to hold a JSON array of feature records.  The
arrays of all files are concatenated, in file order, into one document of
the form ``{"features": [...]}``.  Files whose top-level value is not an
array, or that do not parse at all, are skipped and counted rather than
failing the run; read errors propagate.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import typer

from .errors import MergeFailed, ReportError, ReportWriteError, SourceDirectoryNotFound

log = logging.getLogger(__name__)


class FileStatus(str, Enum):
    ACCEPTED = "accepted"
    SKIPPED_NOT_ARRAY = "skipped_not_array"
    SKIPPED_PARSE_ERROR = "skipped_parse_error"


@dataclass
class FileOutcome:
    """What happened to a single input file."""

    path: Path
    status: FileStatus
    records: List[Any] = field(default_factory=list)
    cause: Optional[str] = None


@dataclass
class MergeResult:
    features: List[Any] = field(default_factory=list)
    outcomes: List[FileOutcome] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        """Count the input files per status; every status is present."""
        counts = {status.value: 0 for status in FileStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        return counts

    def to_json(self) -> str:
        return json.dumps({"features": self.features}, ensure_ascii=False, separators=(",", ":"))


def discover_reports(source_dir: Path) -> List[Path]:
    """List the ``*.json`` files directly inside `source_dir`, sorted by name.

    The suffix match is case-insensitive.  Sorting keeps the order of the
    merged features stable between runs.
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise SourceDirectoryNotFound(f"Source directory not found: {source_dir}")
    return sorted(
        (p for p in source_dir.iterdir() if p.name.lower().endswith(".json") and p.is_file()),
        key=lambda p: p.name,
    )


def read_report(path: Path) -> FileOutcome:
    """Read and classify one result file.

    Raises:
        OSError: if the file cannot be read.
    """
    path = Path(path)
    with open(path, "rb") as f:
        raw = f.read()
    try:
        value = json.loads(raw.decode("utf-8"))
    except ValueError as exc:
        # covers both JSONDecodeError and UnicodeDecodeError
        return FileOutcome(path, FileStatus.SKIPPED_PARSE_ERROR, cause=str(exc))
    if not isinstance(value, list):
        return FileOutcome(path, FileStatus.SKIPPED_NOT_ARRAY)
    return FileOutcome(path, FileStatus.ACCEPTED, records=value)


def merge_files(files: Iterable[Path]) -> MergeResult:
    """Concatenate the feature arrays of `files`, keeping their order."""
    result = MergeResult()
    for path in files:
        outcome = read_report(path)
        result.outcomes.append(outcome)
        if outcome.status is FileStatus.ACCEPTED:
            result.features.extend(outcome.records)
            log.info("Merged %d records from %s", len(outcome.records), outcome.path.name)
        elif outcome.status is FileStatus.SKIPPED_NOT_ARRAY:
            log.info("Skipped %s: top-level value is not an array", outcome.path.name)
        else:
            log.warning("Skipped %s: invalid JSON (%s)", outcome.path.name, outcome.cause)
    log.info("Merge summary: %s", result.summary())
    return result


def merge(files: Iterable[Path]) -> str:
    """Merge `files` and return the JSON text of the merged document."""
    return merge_files(files).to_json()


def format_summary(result: MergeResult) -> str:
    counts = result.summary()
    return (
        f"{len(result.features)} features from {counts['accepted']} files "
        f"(skipped: {counts['skipped_not_array']} not an array, "
        f"{counts['skipped_parse_error']} invalid JSON)"
    )


def merge_command(source_dir: str = typer.Option(..., help="Directory containing the JSON result files"),
                  out: Optional[str] = typer.Option(None, help="Path to write the merged JSON (default: stdout)")) -> None:
    """Merge the JSON result files of a directory into one document."""
    try:
        result = merge_files(discover_reports(Path(source_dir)))
    except ReportError as exc:
        typer.echo(f"Merge failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        typer.echo(f"Merge failed: {MergeFailed('Error reading JSON result file', exc)}", err=True)
        raise typer.Exit(code=1) from exc
    if out is None:
        typer.echo(result.to_json())
        return
    out_path = Path(out).resolve()
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(result.to_json())
    except OSError as exc:
        typer.echo(f"Merge failed: {ReportWriteError(f'Error writing merged document: {out_path}', exc)}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Merged {format_summary(result)} into {out}")

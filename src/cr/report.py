"""Report generation for Cucumber JSON results.

Merges the result files of a source directory (see `cr.merge`) and renders
the merged document through a user supplied Jinja2 template into
``report.html``.  The merged mapping is the template's root context, so a
template can refer to ``features`` directly, e.g. ``{{ features|length }}``.
The helpers in `cr.helpers` are available to every template.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import jinja2
import typer
from jinja2 import Environment, FileSystemLoader

from . import helpers as helpers_module
from .errors import (
    MergedDocumentError,
    MergeFailed,
    RenderError,
    ReportError,
    ReportWriteError,
    TemplateCompileError,
    TemplateNotFound,
)
from .merge import MergeResult, discover_reports, format_summary, merge_files

log = logging.getLogger(__name__)

REPORT_FILENAME = "report.html"


@dataclass(frozen=True)
class ReportConfig:
    source_dir: Path
    output_dir: Path
    template_file: Path


@dataclass
class ReportRun:
    output_path: Path
    merge: MergeResult


def validate_template(template_file: Path) -> Path:
    template_file = Path(template_file)
    if not template_file.exists() or template_file.is_dir():
        raise TemplateNotFound(f"Template file not found: {template_file}")
    return template_file


def build_environment(template_dir: Path, helpers: Optional[Dict[str, Callable[..., Any]]] = None) -> Environment:
    """Create the Jinja2 environment for one run.

    Templates and their includes are looked up by exact file name inside
    `template_dir`.
    """
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    return helpers_module.register_helpers(env, helpers)


def decode_document(text: str) -> Dict[str, Any]:
    """Decode merged JSON text into the template context."""
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise MergedDocumentError("Merged document is not valid JSON", exc) from exc
    if not isinstance(data, dict) or not isinstance(data.get("features"), list):
        raise MergedDocumentError("Merged document has no 'features' array")
    return data


def compile_template(env: Environment, name: str) -> jinja2.Template:
    try:
        return env.get_template(name)
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateCompileError(f"Template syntax error in {exc.name or name} line {exc.lineno}", exc) from exc
    except jinja2.TemplateNotFound as exc:
        raise TemplateCompileError(f"Template not found: {name}", exc) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise TemplateCompileError(f"Error reading template: {name}", exc) from exc


def apply_template(template: jinja2.Template, data: Dict[str, Any]) -> str:
    try:
        return template.render(data)
    except jinja2.TemplateNotFound as exc:
        # an include or import that does not exist
        raise TemplateCompileError(f"Template not found: {exc.name}", exc) from exc
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateCompileError(f"Template syntax error in {exc.name} line {exc.lineno}", exc) from exc
    except Exception as exc:
        raise RenderError(f"Error rendering template {template.name}", exc) from exc


def write_report(output_dir: Path, rendered: str) -> Path:
    """Write `rendered` to ``report.html`` inside `output_dir`, replacing it."""
    output_path = Path(output_dir) / REPORT_FILENAME
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8", newline="") as f_out:
            f_out.write(rendered)
    except OSError as exc:
        raise ReportWriteError(f"Error writing report: {output_path}", exc) from exc
    return output_path


def generate_report(config: ReportConfig, notify: Optional[Callable[[str], None]] = None) -> ReportRun:
    """Run the full merge and render pipeline.

    Args:
        config: Source directory, output directory and template file.
        notify: Optional callback receiving a line for each completed step,
            in addition to the module log.

    Returns:
        A `ReportRun` with the report path and the merge outcome.

    Raises:
        ReportError: a subclass naming the step that failed.  The report
            file is only written once rendering has succeeded.
    """

    def progress(message: str) -> None:
        log.info(message)
        if notify is not None:
            notify(message)

    template_file = validate_template(config.template_file)
    progress(f"Template file: {template_file}")

    data_files = discover_reports(config.source_dir)
    progress(f"Found {len(data_files)} JSON report files in {config.source_dir}")
    for data_file in data_files:
        log.debug("Input file: %s", data_file.name)

    env = build_environment(template_file.parent)

    try:
        merged = merge_files(data_files)
    except OSError as exc:
        raise MergeFailed(f"Error reading JSON result files in {config.source_dir}", exc) from exc
    progress(f"Merged {format_summary(merged)}")

    data = decode_document(merged.to_json())
    template = compile_template(env, template_file.name)
    progress("Template compiled")

    rendered = apply_template(template, data)
    output_path = write_report(config.output_dir, rendered)
    progress(f"Report written to {output_path}")
    return ReportRun(output_path=output_path, merge=merged)


def report_command(source_dir: str = typer.Option(..., help="Directory containing the JSON result files"),
                   output_dir: str = typer.Option(..., help="Directory to write report.html into"),
                   template: str = typer.Option(..., help="Path to the Jinja2 report template"),
                   verbose: bool = typer.Option(False, "--verbose", "-v", help="Print each pipeline step")) -> None:
    """Generate an HTML report from a directory of Cucumber JSON results."""
    config = ReportConfig(
        source_dir=Path(source_dir),
        output_dir=Path(output_dir),
        template_file=Path(template),
    )
    try:
        run = generate_report(config, notify=typer.echo if verbose else None)
    except ReportError as exc:
        typer.echo(f"Report generation failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if not verbose:
        typer.echo(f"Report written to {run.output_path}")
    typer.echo(format_summary(run.merge))

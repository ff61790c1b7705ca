"""Error types for report generation.

Each pipeline stage that can abort a run has its own exception class so the
command line can report which stage failed.  Helper contract violations are
a separate `TypeError` subclass because they are raised from inside the
template engine while it renders.
"""

from __future__ import annotations

from typing import Any, Optional


class ReportError(Exception):
    """Base class for failures that abort a report run."""

    stage = "report"

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        text = f"{self.stage}: {self.message}"
        if self.cause is not None:
            text += f": {self.cause}"
        return text


class ConfigurationError(ReportError):
    stage = "validate"


class TemplateNotFound(ConfigurationError):
    """The template path is missing or is a directory."""


class SourceDirectoryNotFound(ConfigurationError):
    """The directory holding the JSON result files does not exist."""


class MergeFailed(ReportError):
    """An input file could not be read."""

    stage = "merge"


class MergedDocumentError(ReportError):
    """The merged document did not decode to the expected shape."""

    stage = "decode"


class TemplateCompileError(ReportError):
    stage = "compile"


class RenderError(ReportError):
    stage = "apply"


class ReportWriteError(ReportError):
    stage = "persist"


class HelperTypeError(TypeError):
    """A template helper received a value of the wrong kind."""

    def __init__(self, helper: str, expected: str, value: Any) -> None:
        super().__init__(
            f"{helper}: expected {expected}, got {type(value).__name__} {value!r}"
        )
        self.helper = helper
        self.expected = expected
        self.value = value

"""Entry point of the ``cr`` command.

``cr report`` renders a directory of Cucumber JSON results into
``report.html``; ``cr merge`` only writes the merged ``{"features": [...]}``
document.  ``--log-level`` applies to both and is given before the command
name, e.g. ``cr --log-level INFO report ...``.
"""

import logging

import typer

from . import merge as merge_cmd
from . import report as report_cmd
from .logging_setup import setup_logging

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

app = typer.Typer(name="cr", help="Cucumber JSON to HTML report generator")


@app.callback()
def main(log_level: str = typer.Option("WARNING", help="Log level: DEBUG, INFO, WARNING or ERROR")) -> None:
    if log_level.upper() not in LOG_LEVELS:
        raise typer.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level")
    setup_logging(log_level)
    logging.getLogger(__name__).debug("Log level set to %s", log_level.upper())


# register subcommands from other modules
app.command(name="report", help="Render merged results through a template")(report_cmd.report_command)
app.command(name="merge", help="Merge JSON result files into one document")(merge_cmd.merge_command)


if __name__ == "__main__":
    app()

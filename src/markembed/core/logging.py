"""
Structured logging for markembed.

Every event goes to stderr, so the CLI's stdout carries only its tables and
summaries. Per-file context (``path``, ``project_id``) is bound with
``structlog.contextvars`` by the ingest entry point and merged into each
event, so the normalize, embed and persist steps log without passing it.
"""

import logging
import os
import sys
from typing import Any, Literal

import structlog

LogFormat = Literal["json", "plain", "auto"]


def _should_use_json_format() -> bool:
    """Determine if JSON format should be used based on environment."""
    ci_vars = ["CI", "CONTINUOUS_INTEGRATION", "GITHUB_ACTIONS", "JENKINS_URL"]
    if any(os.environ.get(var) for var in ci_vars):
        return True

    # Redirected stderr means a log collector, not a human
    return bool(not sys.stderr.isatty())


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level}")
    return number


def setup_logging(format_type: LogFormat | str = "auto", level: str = "info") -> None:
    """
    Setup structured logging with format and level control.

    Args:
        format_type: "json" for JSON output, "plain" for human-readable,
                "auto" to auto-detect based on TTY/CI.
        level: minimum level emitted (debug, info, warning, error).

    Raises:
        ValueError: if ``level`` is not a logging level name.
    """
    use_json = format_type == "json" or (format_type == "auto" and _should_use_json_format())

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if use_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


log = structlog.get_logger()

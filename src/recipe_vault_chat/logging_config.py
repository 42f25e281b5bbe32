from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from loguru import logger

from recipe_vault_chat.app_config import AppConfig

_CONSOLE_FORMAT = "<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"

_DEFAULT_SINKS = [{"type": "console"}, {"type": "file"}]


def _add_console_sink(app: AppConfig, sink: dict[str, Any], level: str) -> str:
    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT)
    return f"console (stderr, {level})"


def _add_file_sink(app: AppConfig, sink: dict[str, Any], level: str) -> str:
    path = sink.get("path", app.log_file)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        path,
        level=level,
        format=_FILE_FORMAT,
        rotation=sink.get("rotation", app.log_rotation),
        retention=sink.get("retention", app.log_retention),
        encoding="utf-8",
    )
    return f"file ({path}, {level})"


_SINK_BUILDERS = {
    "console": _add_console_sink,
    "file": _add_file_sink,
}


def setup_logging(app: AppConfig) -> list[str]:
    """Replace loguru's sinks with those listed in ``LogConsumers``.

    Each entry is ``{"type": "console" | "file", "level"?, "path"?, "rotation"?, "retention"?}``;
    missing file settings come from ``LogFile``, ``LogRotation`` and ``LogRetention``.
    Returns one human-readable description per sink added.
    """
    logger.remove()

    descriptions: list[str] = []
    for sink in app.log_consumers if app.log_consumers is not None else _DEFAULT_SINKS:
        sink_type = sink.get("type", "")
        builder = _SINK_BUILDERS.get(sink_type)
        if builder is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue
        descriptions.append(builder(app, sink, sink.get("level", app.log_level)))
    return descriptions

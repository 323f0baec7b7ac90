import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger


@dataclass
class StderrSink:
    """Diagnostics for a terminal; stdout carries the results for the host."""

    level: str = "WARNING"

    def register(self) -> str:
        logger.add(
            sys.stderr,
            level=self.level,
            format="<level>{level:<8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
        )
        return f"stderr ({self.level})"


@dataclass
class RotatingFileSink:
    """Keeps a trail of one-shot invocations, which have no terminal attached."""

    level: str = "INFO"
    path: str = "~/.clip_gpt/clip_gpt.log"
    rotation: str = "5 MB"
    retention: int = 3

    def register(self) -> str:
        target = Path(self.path).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(target),
            level=self.level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {name}:{line} - {message}",
            rotation=self.rotation,
            retention=self.retention,
            encoding="utf-8",
        )
        return f"{target} ({self.level})"


_SINKS = {
    "console": StderrSink,
    "file": RotatingFileSink,
}

_DEFAULT_SINKS = [
    {"type": "console", "level": "WARNING"},
    {"type": "file"},
]


def setup_logging(level: str = "INFO", consumers: list[dict[str, Any]] | None = None) -> list[str]:
    """Route loguru to the sinks listed under ``LogConsumers`` in config.json.

    Entries without a ``level`` use ``level``. Returns one line per active sink
    so the console can report where logs go.
    """
    logger.remove()

    active: list[str] = []
    skipped: list[str] = []
    for entry in consumers if consumers is not None else _DEFAULT_SINKS:
        options = dict(entry)
        kind = options.pop("type", "")
        options.setdefault("level", level)
        sink_cls = _SINKS.get(kind)
        if sink_cls is None:
            skipped.append(f"unknown log consumer type {kind!r}")
            continue
        try:
            active.append(sink_cls(**options).register())
        except (TypeError, ValueError, OSError) as ex:
            skipped.append(f"log consumer {kind!r} not started: {ex}")

    # Reported once the surviving sinks are in place.
    for reason in skipped:
        logger.warning(reason)
    return active

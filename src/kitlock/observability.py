"""Structured logging and observability helpers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(slots=True)
class StructuredLogger:
    """Collects operation records and mirrors them to stdlib ``logging``.

    Records are kept in memory so callers (and tests) can inspect what happened
    during a resolve or fetch; each record is also emitted on the
    ``kitlock.<operation>`` logger.
    """

    records: list[dict[str, Any]] = field(default_factory=list)

    def log(
        self,
        *,
        operation: str,
        image: str | None,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "image": image,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)

        logger = logging.getLogger(f"kitlock.{operation}")
        if image is not None:
            logger.log(_LEVELS.get(level, logging.INFO), "%s [%s]", message, image)
        else:
            logger.log(_LEVELS.get(level, logging.INFO), "%s", message)

    def records_for_operation(self, operation: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("operation") == operation]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path

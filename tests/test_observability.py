import json
import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from kitlock.lockfile import create_lock
from kitlock.observability import StructuredLogger
from kitlock.project import Image, Project
from kitlock.registry import InProcessRegistry

SDK = Image(name="S", version="2.0.0", vendor="v1")


def test_records_are_mirrored_to_stdlib_logging(caplog: pytest.LogCaptureFixture) -> None:
    logger = StructuredLogger()

    with caplog.at_level(logging.DEBUG, logger="kitlock"):
        logger.log(operation="fetch", image="A-1.0.0@v1", message="Pulling image", level="debug")
        logger.log(operation="lock", image=None, message="Wrote lock file")

    assert [record.name for record in caplog.records] == ["kitlock.fetch", "kitlock.lock"]
    assert caplog.records[0].levelno == logging.DEBUG
    assert caplog.records[0].getMessage() == "Pulling image [A-1.0.0@v1]"
    assert caplog.records[1].levelno == logging.INFO


def test_trace_records_map_to_debug(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="kitlock"):
        StructuredLogger().log(operation="fetch", image=None, message="digest found", level="trace")

    assert caplog.records[0].levelno == logging.DEBUG


def test_lock_creation_writes_json_lines_report(
    tmp_path: Path,
    registry: InProcessRegistry,
    publish_kit: Callable[..., str],
    publish_sdk: Callable[..., str],
    write_project: Callable[..., Project],
) -> None:
    publish_sdk("S", "2.0.0")
    publish_kit("A", "1.0.0", sdk=SDK)
    project = write_project(kits=[Image(name="A", version="1.0.0", vendor="v1")])
    logger = StructuredLogger()

    lock = create_lock(project, registry=registry, logger=logger)
    report = logger.to_json_lines(tmp_path / "reports" / "lock.jsonl")

    lines = [json.loads(line) for line in report.read_text(encoding="utf-8").splitlines()]
    assert lines == logger.records
    assert {line["operation"] for line in lines} == {"lock", "resolve"}
    assert lines[-1]["extra"]["fingerprint"] == lock.fingerprint()
    assert all(set(line) >= {"level", "operation", "image", "message"} for line in lines)

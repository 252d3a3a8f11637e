"""Lockfile parser and serializer."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from kitlock.errors import LockfileError
from kitlock.lockfile.model import LOCK_SCHEMA_VERSION, Lock, LockedImage

_RECORD_KEYS = ("name", "version", "vendor", "source", "digest")


def serialize_lockfile(lock: Lock) -> str:
    return json.dumps(lock.to_payload(), indent=2, sort_keys=True) + "\n"


def parse_lockfile(raw: str) -> Lock:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LockfileError("Invalid lockfile JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise LockfileError("Invalid lockfile payload type.")

    schema_version = _required_int(payload, "schema_version")
    if schema_version != LOCK_SCHEMA_VERSION:
        raise LockfileError(
            "Unsupported lockfile `schema_version`.",
            hint="Regenerate the lockfile with this version of kitlock.",
            context={"expected": str(LOCK_SCHEMA_VERSION), "actual": str(schema_version)},
        )
    sdk = _parse_locked_image(payload.get("sdk"), key="sdk")
    kits_raw = payload.get("kit", [])
    if not isinstance(kits_raw, list):
        raise LockfileError("Invalid lockfile `kit` value.")
    kits = tuple(_parse_locked_image(item, key="kit") for item in kits_raw)
    return Lock(schema_version=schema_version, sdk=sdk, kit=kits)


def read_lockfile(path: str | Path) -> Lock:
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileError(
            "Lockfile does not exist.",
            hint="Run `update` first to resolve and create the lockfile.",
            context={"path": str(lock_path)},
        ) from exc
    return parse_lockfile(raw)


def write_lockfile(lock: Lock, path: str | Path) -> Path:
    lock_path = Path(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=lock_path.parent,
        prefix=f".{lock_path.name}.",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_file.name)
    try:
        with temp_file:
            temp_file.write(serialize_lockfile(lock))
        os.replace(temp_path, lock_path)
    finally:
        temp_path.unlink(missing_ok=True)
    return lock_path


def _parse_locked_image(item: Any, *, key: str) -> LockedImage:
    if not isinstance(item, dict):
        raise LockfileError(f"Invalid `{key}` entry in lockfile.")
    unknown = sorted(set(item) - set(_RECORD_KEYS))
    if unknown:
        raise LockfileError(
            f"Unexpected fields in lockfile `{key}` entry.",
            context={"fields": ", ".join(unknown)},
        )
    return LockedImage(**{name: _required_str(item, name) for name in _RECORD_KEYS})


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise LockfileError(f"Invalid lockfile `{key}` value.")
    return value


def _required_int(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise LockfileError(f"Invalid lockfile `{key}` value.")
    return value

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from kitlock.errors import LockfileError, RegistryError
from kitlock.lockfile import (
    create_lock,
    load_lock,
    parse_lockfile,
    read_lockfile,
    serialize_lockfile,
    write_lockfile,
)
from kitlock.project import Image, Project
from kitlock.registry import InProcessRegistry

SDK = Image(name="S", version="2.0.0", vendor="v1")


@pytest.fixture
def project(
    publish_kit: Callable[..., str],
    publish_sdk: Callable[..., str],
    write_project: Callable[..., Project],
) -> Project:
    publish_sdk("S", "2.0.0")
    publish_kit("A", "1.0.0", sdk=SDK, kits=[Image(name="B", version="1.0.0", vendor="v1")])
    publish_kit("B", "1.0.0", sdk=SDK)
    return write_project(kits=[Image(name="A", version="1.0.0", vendor="v1")])


def _edit_lock(path: Path, edit: Callable[[dict], None]) -> None:
    payload = json.loads(path.read_text(encoding="utf-8"))
    edit(payload)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def test_create_lock_writes_human_diffable_json(project: Project, registry: InProcessRegistry) -> None:
    lock = create_lock(project, registry=registry)

    raw = project.lock_path.read_text(encoding="utf-8")
    payload = json.loads(raw)
    assert raw == serialize_lockfile(lock)
    assert raw.endswith("}\n")
    assert payload["schema_version"] == 1
    assert sorted(payload["sdk"]) == ["digest", "name", "source", "vendor", "version"]
    assert [entry["name"] for entry in payload["kit"]] == ["A", "B"]
    assert not list(project.project_dir.glob(".*.tmp"))


def test_parse_lockfile_restores_records_without_manifest(
    project: Project,
    registry: InProcessRegistry,
) -> None:
    lock = create_lock(project, registry=registry)

    decoded = parse_lockfile(serialize_lockfile(lock))

    assert decoded == lock
    assert decoded.to_payload() == lock.to_payload()
    assert all(image.manifest == b"" for image in decoded.kit)


def test_load_lock_succeeds_when_resolution_matches(
    project: Project,
    registry: InProcessRegistry,
) -> None:
    created = create_lock(project, registry=registry)

    loaded = load_lock(project, registry=registry)

    assert loaded == created
    assert loaded.fingerprint() == created.fingerprint()


def test_load_lock_requires_existing_lock_file(project: Project, registry: InProcessRegistry) -> None:
    with pytest.raises(LockfileError) as excinfo:
        load_lock(project, registry=registry)

    assert "run `update` first" in str(excinfo.value).lower()


def test_load_lock_detects_edited_version(project: Project, registry: InProcessRegistry) -> None:
    create_lock(project, registry=registry)

    def bump_version(payload: dict) -> None:
        payload["kit"][1]["version"] = "1.0.1"

    _edit_lock(project.lock_path, bump_version)

    with pytest.raises(LockfileError) as excinfo:
        load_lock(project, registry=registry)

    assert "require an update" in str(excinfo.value)


def test_load_lock_detects_edited_digest(project: Project, registry: InProcessRegistry) -> None:
    create_lock(project, registry=registry)

    def flip_digest(payload: dict) -> None:
        digest = payload["sdk"]["digest"]
        payload["sdk"]["digest"] = ("B" if digest[0] != "B" else "C") + digest[1:]

    _edit_lock(project.lock_path, flip_digest)

    with pytest.raises(LockfileError) as excinfo:
        load_lock(project, registry=registry)

    assert "diff" in str(excinfo.value)


def test_load_lock_detects_republished_kit(
    project: Project,
    registry: InProcessRegistry,
    publish_kit: Callable[..., str],
) -> None:
    create_lock(project, registry=registry)
    publish_kit("B", "1.0.0", sdk=SDK, layers=[{"B/README": b"rebuilt\n"}])

    with pytest.raises(LockfileError):
        load_lock(project, registry=registry)


def test_load_lock_detects_changed_project_declarations(
    project: Project,
    registry: InProcessRegistry,
    publish_kit: Callable[..., str],
    write_project: Callable[..., Project],
) -> None:
    create_lock(project, registry=registry)
    publish_kit("C", "1.0.0", sdk=SDK)
    changed = write_project(
        kits=[
            Image(name="A", version="1.0.0", vendor="v1"),
            Image(name="C", version="1.0.0", vendor="v1"),
        ]
    )

    with pytest.raises(LockfileError):
        load_lock(changed, registry=registry)


def test_failed_resolution_does_not_write_lock_file(
    registry: InProcessRegistry,
    write_project: Callable[..., Project],
) -> None:
    project = write_project(kits=[Image(name="missing", version="1.0.0", vendor="v1")])

    with pytest.raises(RegistryError):
        create_lock(project, registry=registry)

    assert not project.lock_path.exists()


@pytest.mark.parametrize(
    ("raw", "fragment"),
    [
        ("not json", "Invalid lockfile JSON"),
        ("[]", "payload type"),
        ('{"schema_version": 2}', "schema_version"),
        ('{"schema_version": 1, "sdk": {"name": "S"}, "kit": []}', "version"),
    ],
)
def test_parse_lockfile_rejects_malformed_input(raw: str, fragment: str) -> None:
    with pytest.raises(LockfileError) as excinfo:
        parse_lockfile(raw)

    assert fragment in str(excinfo.value)


def test_parse_lockfile_rejects_manifest_field() -> None:
    record = {
        "name": "S",
        "version": "2.0.0",
        "vendor": "v1",
        "source": "registry.example.com/kits/S:v2.0.0",
        "digest": "abc=",
        "manifest": "{}",
    }
    raw = json.dumps({"schema_version": 1, "sdk": record, "kit": []})

    with pytest.raises(LockfileError) as excinfo:
        parse_lockfile(raw)

    assert "manifest" in str(excinfo.value)


def test_read_lockfile_missing_path(tmp_path: Path) -> None:
    with pytest.raises(LockfileError):
        read_lockfile(tmp_path / "Kit.lock")


def test_interrupted_write_keeps_previous_lock_and_no_temp_file(
    project: Project,
    registry: InProcessRegistry,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    lock = create_lock(project, registry=registry)
    previous = project.lock_path.read_bytes()

    def fail_replace(src: object, dst: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("kitlock.lockfile.io.os.replace", fail_replace)

    with pytest.raises(OSError):
        write_lockfile(lock, project.lock_path)

    assert project.lock_path.read_bytes() == previous
    assert not list(project.project_dir.glob(".Kit.lock*"))

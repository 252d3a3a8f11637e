import base64
import hashlib

from kitlock.errors import (
    ArchiveError,
    ErrorCode,
    KitMetadataError,
    LockfileError,
    RegistryError,
    ResolutionError,
    ValidationError,
)
from kitlock.lockfile import Lock, LockedImage, manifest_digest
from kitlock.project import Image, Vendor
from kitlock.registry import InProcessRegistry


def _locked(
    *,
    name: str = "core-kit",
    version: str = "1.0.0",
    vendor: str = "v1",
    source: str = "registry.example.com/kits/core-kit:v1.0.0",
    digest: str = "abc=",
) -> LockedImage:
    return LockedImage(name=name, version=version, vendor=vendor, source=source, digest=digest)


def test_locked_image_equality_uses_source_and_digest_only() -> None:
    left = _locked(name="core-kit", version="1.0.0")
    right = _locked(name="renamed-kit", version="9.9.9")

    assert left == right


def test_locked_image_digest_change_breaks_equality_but_not_hash() -> None:
    original = _locked(digest="abc=")
    republished = _locked(digest="xyz=")

    assert original != republished
    assert hash(original) == hash(republished)

    seen: set[LockedImage] = {original, republished}
    assert len(seen) == 2
    collisions = [item for item in seen if hash(item) == hash(original)]
    assert len(collisions) == 2


def test_locked_image_manifest_bytes_do_not_affect_equality() -> None:
    with_manifest = LockedImage(
        name="core-kit",
        version="1.0.0",
        vendor="v1",
        source="registry.example.com/kits/core-kit:v1.0.0",
        digest="abc=",
        manifest=b"{}",
    )

    assert with_manifest == _locked()
    assert "manifest" not in with_manifest.to_payload()


def test_locked_image_from_registry_digests_manifest_bytes() -> None:
    registry = InProcessRegistry()
    source = registry.publish("registry.example.com/kits", "core-kit", "1.0.0")

    locked = LockedImage.from_registry(
        registry,
        Vendor(registry="registry.example.com/kits"),
        Image(name="core-kit", version="1.0.0", vendor="v1"),
    )

    manifest = registry.manifests[source]
    expected = base64.b64encode(hashlib.sha256(manifest).digest()).decode("ascii")
    assert locked.source == source
    assert locked.digest == expected == manifest_digest(manifest)
    assert locked.manifest == manifest


def test_locked_image_digest_uri_and_display() -> None:
    locked = _locked()

    assert locked.digest_uri("sha256:" + "0" * 64) == (
        "registry.example.com/kits/core-kit@sha256:" + "0" * 64
    )
    assert str(locked) == "core-kit-1.0.0@v1 (registry.example.com/kits/core-kit:v1.0.0)"
    assert str(Image(name="core-kit", version="1.0.0", vendor="v1")) == "core-kit-1.0.0@v1"


def test_lock_fingerprint_is_stable_and_content_sensitive() -> None:
    sdk = _locked(name="sdk", source="registry.example.com/kits/sdk:v1.0.0")
    lock = Lock(schema_version=1, sdk=sdk, kit=(_locked(),))
    same = Lock(schema_version=1, sdk=sdk, kit=(_locked(),))
    changed = Lock(schema_version=1, sdk=sdk, kit=(_locked(digest="other="),))

    assert lock.to_cbor() == same.to_cbor()
    assert lock.fingerprint() == same.fingerprint()
    assert lock.fingerprint() != changed.fingerprint()


def test_external_kit_metadata_is_canonical_json() -> None:
    sdk = _locked(name="sdk", source="registry.example.com/kits/sdk:v1.0.0")
    lock = Lock(schema_version=1, sdk=sdk, kit=(_locked(),))

    encoded = lock.external_kit_metadata().to_canonical_json()

    assert encoded.startswith(b'{"kit":[{"digest":"abc=","name":"core-kit"')
    assert b" " not in encoded
    assert b"manifest" not in encoded


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ValidationError("bad input"),
        ResolutionError("conflict"),
        KitMetadataError("not a kit"),
        LockfileError("lock mismatch"),
        RegistryError("unreachable"),
        ArchiveError("corrupt"),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.VALIDATION.value,
        ErrorCode.RESOLUTION.value,
        ErrorCode.KIT_METADATA.value,
        ErrorCode.LOCKFILE.value,
        ErrorCode.REGISTRY.value,
        ErrorCode.ARCHIVE.value,
    ]


def test_error_renders_hint_and_context() -> None:
    error = ResolutionError(
        "Vendor 'x' is not specified.",
        hint="Add a vendor table.",
        context={"image": "a-1.0.0@x", "empty": ""},
    )

    rendered = str(error)
    assert "Hint: Add a vendor table." in rendered
    assert "  image: a-1.0.0@x" in rendered
    assert "empty" not in rendered
    assert error.to_dict()["code"] == "E_RESOLUTION"

"""Lockfile typed model."""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import cbor2

if TYPE_CHECKING:
    from kitlock.project import Image, Vendor
    from kitlock.registry import RegistryClient

LOCK_SCHEMA_VERSION = 1


@dataclass(frozen=True, slots=True, eq=False)
class LockedImage:
    """A dependency pinned to the digest of its manifest (list).

    Equality is defined by ``source`` and ``digest`` only, while the hash covers
    ``name``, ``version`` and ``vendor``. Two entries for the same logical
    dependency therefore land in the same hash bucket even when their digests
    differ, which is what conflict detection relies on.
    """

    name: str
    version: str
    vendor: str
    source: str
    digest: str
    manifest: bytes = field(default=b"", repr=False)

    @classmethod
    def from_registry(cls, registry: RegistryClient, vendor: Vendor, image: Image) -> LockedImage:
        source = f"{vendor.registry}/{image.name}:v{image.version}"
        manifest = registry.get_manifest(source)
        return cls(
            name=image.name,
            version=image.version,
            vendor=image.vendor,
            source=source,
            digest=manifest_digest(manifest),
            manifest=manifest,
        )

    def digest_uri(self, digest: str) -> str:
        """Address a specific manifest of this image, e.g. ``registry/name@sha256:...``."""
        return self.source.replace(f":v{self.version}", f"@{digest}")

    def to_payload(self) -> dict[str, str]:
        return {
            "name": self.name,
            "version": self.version,
            "vendor": self.vendor,
            "source": self.source,
            "digest": self.digest,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LockedImage):
            return NotImplemented
        return self.source == other.source and self.digest == other.digest

    def __hash__(self) -> int:
        return hash((self.name, self.version, self.vendor))

    def __str__(self) -> str:
        return f"{self.name}-{self.version}@{self.vendor} ({self.source})"


def manifest_digest(manifest: bytes) -> str:
    return base64.b64encode(hashlib.sha256(manifest).digest()).decode("ascii")


@dataclass(frozen=True, slots=True)
class Lock:
    schema_version: int
    sdk: LockedImage
    kit: tuple[LockedImage, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "sdk": self.sdk.to_payload(),
            "kit": [image.to_payload() for image in self.kit],
        }

    def to_cbor(self) -> bytes:
        return cbor2.dumps(self.to_payload(), canonical=True)

    def fingerprint(self) -> str:
        return hashlib.sha256(self.to_cbor()).hexdigest()

    def external_kit_metadata(self) -> ExternalKitMetadata:
        return ExternalKitMetadata(sdk=self.sdk, kits=self.kit)


@dataclass(frozen=True, slots=True)
class ExternalKitMetadata:
    """Summary of the resolved SDK and kits consumed by the downstream build."""

    sdk: LockedImage
    kits: tuple[LockedImage, ...] = ()

    def to_canonical_json(self) -> bytes:
        payload = {
            "sdk": self.sdk.to_payload(),
            "kit": [image.to_payload() for image in self.kits],
        }
        return json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")

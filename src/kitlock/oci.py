"""Typed views over the OCI documents kitlock reads.

Only the fields needed for resolution and extraction are modelled; everything
else in a manifest list, image index or manifest is ignored.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from kitlock.errors import ArchiveError, RegistryError, ValidationError

CONTAINER_DIGEST_PATTERN = re.compile(r"^sha256:[0-9a-f]{64}$")

DOCKER_ARCHITECTURES: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def docker_architecture(arch: str) -> str:
    try:
        return DOCKER_ARCHITECTURES[arch]
    except KeyError as exc:
        raise ValidationError(
            f"Unsupported architecture `{arch}`.",
            hint=f"Use one of: {', '.join(sorted(DOCKER_ARCHITECTURES))}.",
        ) from exc


def parse_container_digest(value: Any, *, what: str = "layer") -> str:
    """Accept only ``sha256:<64 hex>`` digests."""
    if not isinstance(value, str) or not CONTAINER_DIGEST_PATTERN.fullmatch(value):
        raise ArchiveError(
            f"Invalid digest detected in {what}.",
            hint="Only sha256 digests are supported.",
            context={"digest": repr(value)},
        )
    return value


def blob_path(digest: str) -> str:
    """Relative path of a blob inside an OCI image layout."""
    return "blobs/" + digest.replace(":", "/", 1)


@dataclass(frozen=True, slots=True)
class Platform:
    architecture: str
    os: str | None = None


@dataclass(frozen=True, slots=True)
class ManifestView:
    digest: str
    platform: Platform | None = None


@dataclass(frozen=True, slots=True)
class ManifestList:
    manifests: tuple[ManifestView, ...]

    @classmethod
    def from_bytes(cls, raw: bytes, *, source: str) -> ManifestList:
        payload = _load_json(raw, error=RegistryError, what="manifest list", where=source)
        return cls(manifests=_manifest_views(payload, error=RegistryError, where=source))

    def for_architecture(self, architecture: str) -> ManifestView | None:
        for manifest in self.manifests:
            if manifest.platform is not None and manifest.platform.architecture == architecture:
                return manifest
        return None


@dataclass(frozen=True, slots=True)
class ImageIndex:
    manifests: tuple[ManifestView, ...]

    @classmethod
    def from_bytes(cls, raw: bytes, *, where: str) -> ImageIndex:
        payload = _load_json(raw, error=ArchiveError, what="OCI image index", where=where)
        return cls(manifests=_manifest_views(payload, error=ArchiveError, where=where))


@dataclass(frozen=True, slots=True)
class Layer:
    digest: str
    media_type: str | None = None


@dataclass(frozen=True, slots=True)
class ManifestLayout:
    layers: tuple[Layer, ...]

    @classmethod
    def from_bytes(cls, raw: bytes, *, where: str) -> ManifestLayout:
        payload = _load_json(raw, error=ArchiveError, what="OCI manifest", where=where)
        layers_raw = payload.get("layers")
        if not isinstance(layers_raw, list):
            raise ArchiveError("OCI manifest has no `layers` list.", context={"path": where})
        layers = []
        for item in layers_raw:
            if not isinstance(item, dict):
                raise ArchiveError("Invalid layer descriptor in OCI manifest.", context={"path": where})
            media_type = item.get("mediaType")
            layers.append(
                Layer(
                    digest=parse_container_digest(item.get("digest")),
                    media_type=media_type if isinstance(media_type, str) else None,
                )
            )
        return cls(layers=tuple(layers))


def _load_json(
    raw: bytes,
    *,
    error: type[RegistryError] | type[ArchiveError],
    what: str,
    where: str,
) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise error(f"Failed to deserialize {what}.", context={"source": where, "error": str(exc)}) from exc
    if not isinstance(payload, dict):
        raise error(f"Invalid {what} structure.", context={"source": where})
    return payload


def _manifest_views(
    payload: dict[str, Any],
    *,
    error: type[RegistryError] | type[ArchiveError],
    where: str,
) -> tuple[ManifestView, ...]:
    manifests_raw = payload.get("manifests")
    if not isinstance(manifests_raw, list):
        raise error("Document has no `manifests` list.", context={"source": where})
    views = []
    for item in manifests_raw:
        if not isinstance(item, dict) or not isinstance(item.get("digest"), str):
            raise error("Invalid manifest descriptor.", context={"source": where})
        platform_raw = item.get("platform")
        platform = None
        if isinstance(platform_raw, dict) and isinstance(platform_raw.get("architecture"), str):
            os_name = platform_raw.get("os")
            platform = Platform(
                architecture=platform_raw["architecture"],
                os=os_name if isinstance(os_name, str) else None,
            )
        views.append(ManifestView(digest=item["digest"], platform=platform))
    return tuple(views)

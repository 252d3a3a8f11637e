"""Kit metadata embedded in the image config of published kits.

A kit image carries a single label whose value is base64-encoded canonical
JSON of ``{name, version, sdk, kit: [...]}``. Every platform manifest of a
kit's manifest list has to carry the same label value.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from kitlock.errors import KitMetadataError, ValidationError
from kitlock.observability import StructuredLogger
from kitlock.oci import ManifestList
from kitlock.project import SEMVER_PATTERN, Image, Vendor, parse_image
from kitlock.registry import RegistryClient

if TYPE_CHECKING:
    from kitlock.lockfile.model import LockedImage

KIT_METADATA_LABEL = "dev.bottlerocket.kit.v1"


@dataclass(frozen=True, slots=True)
class ImageMetadata:
    name: str
    version: str
    sdk: Image
    kits: tuple[Image, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> ImageMetadata:
        if not isinstance(payload, dict):
            raise ValidationError("Kit metadata is not a JSON object.")
        name = payload.get("name")
        version = payload.get("version")
        if not isinstance(name, str) or not name:
            raise ValidationError("Kit metadata has an invalid `name` value.")
        if not isinstance(version, str) or not SEMVER_PATTERN.fullmatch(version):
            raise ValidationError("Kit metadata has an invalid `version` value.")
        kits_raw = payload.get("kit")
        if not isinstance(kits_raw, list):
            raise ValidationError("Kit metadata has an invalid `kit` value.")
        return cls(
            name=name,
            version=version,
            sdk=parse_image(payload.get("sdk"), where="kit metadata `sdk`"),
            kits=tuple(parse_image(item, where="kit metadata `kit`") for item in kits_raw),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "sdk": self.sdk.to_payload(),
            "kit": [kit.to_payload() for kit in self.kits],
        }


def encode_kit_metadata(metadata: ImageMetadata) -> str:
    """Encode metadata the way it is stored in the kit image label."""
    canonical = json.dumps(metadata.to_payload(), sort_keys=True, separators=(",", ":"))
    return base64.b64encode(canonical.encode("utf-8")).decode("ascii")


@dataclass(frozen=True, slots=True)
class EncodedKitMetadata:
    value: str

    @classmethod
    def from_image(cls, registry: RegistryClient, reference: str) -> EncodedKitMetadata:
        config = registry.get_config(reference)
        value = config.labels.get(KIT_METADATA_LABEL)
        if value is None:
            raise KitMetadataError(
                "No metadata stored on image, this image appears to not be a kit.",
                context={"image": reference, "label": KIT_METADATA_LABEL},
            )
        return cls(value=value)

    def decode(self) -> ImageMetadata:
        try:
            raw = base64.b64decode(self.value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise KitMetadataError(
                "Failed to decode kit metadata as base64.",
                context={"metadata": self.try_debug_image_metadata()},
            ) from exc
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as exc:
            raise KitMetadataError(
                "Failed to parse kit metadata JSON.",
                context={"metadata": self.try_debug_image_metadata(), "error": str(exc)},
            ) from exc
        try:
            return ImageMetadata.from_payload(payload)
        except ValidationError as exc:
            raise KitMetadataError(
                "Kit metadata has an unexpected structure.",
                hint=str(exc),
                context={"metadata": self.try_debug_image_metadata()},
            ) from exc

    def debug_image_metadata(self) -> str | None:
        # Runs while rendering errors and logs, so any failure means "not decodable".
        try:
            raw = base64.b64decode(self.value, validate=True)
            metadata = ImageMetadata.from_payload(json.loads(raw))
        except Exception:
            return None
        return f"<ImageMetadata(decoded) [{metadata!r}]>"

    def try_debug_image_metadata(self) -> str:
        """Render the metadata for logs; never raises."""
        decoded = self.debug_image_metadata()
        if decoded is not None:
            return decoded
        escaped = self.value.replace("\n", "\\n")
        return f"<ImageMetadata(encoded) [{escaped}]>"

    def __repr__(self) -> str:
        return self.try_debug_image_metadata()


def find_kit_metadata(
    registry: RegistryClient,
    vendor: Vendor,
    image: LockedImage,
    *,
    logger: StructuredLogger | None = None,
) -> ImageMetadata:
    """Read the kit metadata shared by every platform manifest of ``image``."""
    manifest_list = ManifestList.from_bytes(image.manifest, source=image.source)
    embedded = _embedded_metadata(registry, vendor, image, manifest_list)

    canonical = next(embedded, None)
    if canonical is None:
        raise KitMetadataError(
            "Could not find metadata for kit.",
            hint="The manifest list has no platform manifests.",
            context={"image": str(image)},
        )

    for candidate in embedded:
        if candidate != canonical:
            if logger is not None:
                logger.log(
                    operation="resolve",
                    image=str(image),
                    level="error",
                    message="Mismatched kit metadata in manifest list",
                    extra={
                        "canonical_metadata": canonical.try_debug_image_metadata(),
                        "kit_metadata": candidate.try_debug_image_metadata(),
                    },
                )
            raise KitMetadataError(
                "Metadata does not match between images in manifest list.",
                hint="A kit must declare the same dependencies for every architecture.",
                context={
                    "image": str(image),
                    "canonical": canonical.try_debug_image_metadata(),
                    "mismatched": candidate.try_debug_image_metadata(),
                },
            )

    return canonical.decode()


def _embedded_metadata(
    registry: RegistryClient,
    vendor: Vendor,
    image: LockedImage,
    manifest_list: ManifestList,
) -> Iterator[EncodedKitMetadata]:
    for manifest in manifest_list.manifests:
        reference = f"{vendor.registry}/{image.name}@{manifest.digest}"
        yield EncodedKitMetadata.from_image(registry, reference)

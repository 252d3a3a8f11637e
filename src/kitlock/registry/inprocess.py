"""In-process registry for testing and development.

Publishes images entirely in memory without contacting a real registry. Each
published image is a manifest list with one manifest per architecture, and
pulls write a genuine OCI image layout (``oci-layout``, ``index.json`` and
``blobs/sha256/...``) so the cache and extraction code paths run unchanged.
Every call is recorded in ``calls`` for inspection.
"""

from __future__ import annotations

import gzip
import hashlib
import io
import json
import tarfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from kitlock.errors import RegistryError
from kitlock.registry.base import ImageConfig

MANIFEST_LIST_MEDIA_TYPE = "application/vnd.oci.image.index.v1+json"
MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
CONFIG_MEDIA_TYPE = "application/vnd.oci.image.config.v1+json"
LAYER_MEDIA_TYPE = "application/vnd.oci.image.layer.v1.tar"
LAYER_GZIP_MEDIA_TYPE = "application/vnd.oci.image.layer.v1.tar+gzip"


@dataclass(frozen=True, slots=True)
class _StoredImage:
    manifest_digest: str
    blobs: dict[str, bytes]


@dataclass(slots=True)
class InProcessRegistry:
    name: str = "inprocess"
    manifests: dict[str, bytes] = field(default_factory=dict)
    configs: dict[str, ImageConfig] = field(default_factory=dict)
    images: dict[str, _StoredImage] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)

    def publish(
        self,
        registry: str,
        name: str,
        version: str,
        *,
        architectures: Sequence[str] = ("amd64", "arm64"),
        labels: Mapping[str, str] | None = None,
        arch_labels: Mapping[str, Mapping[str, str]] | None = None,
        layers: Sequence[Mapping[str, bytes]] = (),
        compress: bool = False,
    ) -> str:
        """Publish ``name:v<version>`` under ``registry`` and return its tag reference.

        ``labels`` apply to every architecture; ``arch_labels`` override them per
        architecture. ``layers`` is a list of ``{path: content}`` mappings applied
        in order. Republishing the same tag replaces it.
        """
        entries: list[dict[str, object]] = []
        for arch in architectures:
            image_labels = dict(labels or {})
            image_labels.update((arch_labels or {}).get(arch, {}))
            blobs: dict[str, bytes] = {}

            layer_descriptors = []
            for files in layers:
                layer = _layer_tar(files, compress=compress)
                layer_digest = _put_blob(blobs, layer)
                layer_descriptors.append(
                    {
                        "mediaType": LAYER_GZIP_MEDIA_TYPE if compress else LAYER_MEDIA_TYPE,
                        "digest": layer_digest,
                        "size": len(layer),
                    }
                )

            config = _canonical(
                {"architecture": arch, "os": "linux", "config": {"Labels": image_labels}}
            )
            config_digest = _put_blob(blobs, config)
            manifest = _canonical(
                {
                    "schemaVersion": 2,
                    "mediaType": MANIFEST_MEDIA_TYPE,
                    "config": {
                        "mediaType": CONFIG_MEDIA_TYPE,
                        "digest": config_digest,
                        "size": len(config),
                    },
                    "layers": layer_descriptors,
                }
            )
            manifest_digest = _put_blob(blobs, manifest)

            digest_reference = f"{registry}/{name}@{manifest_digest}"
            self.configs[digest_reference] = ImageConfig(labels=image_labels)
            self.images[digest_reference] = _StoredImage(manifest_digest=manifest_digest, blobs=blobs)
            entries.append(
                {
                    "mediaType": MANIFEST_MEDIA_TYPE,
                    "digest": manifest_digest,
                    "size": len(manifest),
                    "platform": {"architecture": arch, "os": "linux"},
                }
            )

        tag_reference = f"{registry}/{name}:v{version}"
        self.manifests[tag_reference] = _canonical(
            {"schemaVersion": 2, "mediaType": MANIFEST_LIST_MEDIA_TYPE, "manifests": entries}
        )
        return tag_reference

    def get_manifest(self, reference: str) -> bytes:
        self.calls.append(("get_manifest", reference))
        try:
            return self.manifests[reference]
        except KeyError as exc:
            raise RegistryError(
                "Image manifest not found in registry.",
                context={"operation": "get_manifest", "reference": reference},
            ) from exc

    def get_config(self, reference: str) -> ImageConfig:
        self.calls.append(("get_config", reference))
        try:
            return self.configs[reference]
        except KeyError as exc:
            raise RegistryError(
                "Image config not found in registry.",
                context={"operation": "get_config", "reference": reference},
            ) from exc

    def pull_oci_image(self, dest: Path, reference: str) -> None:
        self.calls.append(("pull_oci_image", reference))
        try:
            stored = self.images[reference]
        except KeyError as exc:
            raise RegistryError(
                "Image not found in registry.",
                context={"operation": "pull_oci_image", "reference": reference},
            ) from exc

        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        for digest, payload in stored.blobs.items():
            algorithm, hex_digest = digest.split(":", 1)
            blob_path = dest / "blobs" / algorithm / hex_digest
            blob_path.parent.mkdir(parents=True, exist_ok=True)
            blob_path.write_bytes(payload)
        manifest = stored.blobs[stored.manifest_digest]
        index = {
            "schemaVersion": 2,
            "mediaType": MANIFEST_LIST_MEDIA_TYPE,
            "manifests": [
                {
                    "mediaType": MANIFEST_MEDIA_TYPE,
                    "digest": stored.manifest_digest,
                    "size": len(manifest),
                }
            ],
        }
        (dest / "index.json").write_bytes(_canonical(index))
        (dest / "oci-layout").write_text('{"imageLayoutVersion":"1.0.0"}', encoding="utf-8")

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


def _layer_tar(files: Mapping[str, bytes], *, compress: bool) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        for path, content in sorted(files.items()):
            info = tarfile.TarInfo(name=path)
            info.size = len(content)
            info.mtime = 0
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(content))
    if compress:
        return gzip.compress(buffer.getvalue(), mtime=0)
    return buffer.getvalue()


def _put_blob(blobs: dict[str, bytes], payload: bytes) -> str:
    digest = f"sha256:{hashlib.sha256(payload).hexdigest()}"
    blobs[digest] = payload
    return digest


def _canonical(payload: object) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")

"""Digest-keyed OCI archive cache and idempotent layer extraction.

All on-disk locations used by fetch are derived here. Extraction is guarded by
a ``digest`` marker file written after the last layer; the marker is advisory,
so two processes extracting into the same directory at once can still race.
Pulls land in a temporary sibling directory and are renamed onto the digest
directory only once complete, so an existing archive directory is always whole.
"""

from __future__ import annotations

import os
import shutil
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path

from kitlock.errors import ArchiveError
from kitlock.lockfile.model import LockedImage
from kitlock.observability import StructuredLogger
from kitlock.oci import ImageIndex, ManifestLayout, blob_path, parse_container_digest
from kitlock.registry import RegistryClient

DIGEST_MARKER = "digest"


def archive_dir(cache_dir: str | Path, digest: str) -> Path:
    return Path(cache_dir) / digest.replace(":", "-")


def extraction_dir(kits_dir: str | Path, image: LockedImage, arch: str) -> Path:
    return Path(kits_dir) / image.vendor / image.name / arch


@dataclass(frozen=True, slots=True)
class OCIArchive:
    """One architecture-specific manifest of a locked image, cached on disk."""

    image: LockedImage
    digest: str
    cache_dir: Path

    @property
    def archive_path(self) -> Path:
        return archive_dir(self.cache_dir, self.digest)

    def pull_image(self, registry: RegistryClient, *, logger: StructuredLogger | None = None) -> bool:
        """Pull the image into the cache unless it is already present.

        Returns ``True`` when a pull happened. The directory name is the content
        digest, so an existing directory is trusted as-is.
        """
        logger = logger or StructuredLogger()
        oci_archive_path = self.archive_path
        if oci_archive_path.exists():
            logger.log(
                operation="fetch",
                image=str(self.image),
                level="debug",
                message="Image already present -- no need to pull.",
            )
            return False

        logger.log(operation="fetch", image=str(self.image), level="debug", message="Pulling image")
        try:
            oci_archive_path.parent.mkdir(parents=True, exist_ok=True)
            partial_path = Path(
                tempfile.mkdtemp(prefix=f"{oci_archive_path.name}.partial-", dir=str(oci_archive_path.parent))
            )
        except OSError as exc:
            raise ArchiveError(
                "Failed to create OCI archive directory.",
                context={"image": str(self.image), "path": str(oci_archive_path), "error": str(exc)},
            ) from exc

        # Only a completed pull is renamed onto the digest directory.
        try:
            registry.pull_oci_image(partial_path, self.image.digest_uri(self.digest))
            try:
                os.replace(partial_path, oci_archive_path)
            except OSError as exc:
                if oci_archive_path.exists():
                    logger.log(
                        operation="fetch",
                        image=str(self.image),
                        level="debug",
                        message="Image was pulled concurrently -- keeping existing archive.",
                    )
                    return False
                raise ArchiveError(
                    "Failed to move pulled OCI archive into the cache.",
                    context={"image": str(self.image), "path": str(oci_archive_path), "error": str(exc)},
                ) from exc
        finally:
            if partial_path.exists():
                shutil.rmtree(partial_path, ignore_errors=True)
        return True

    def unpack_layers(self, out_dir: str | Path, *, logger: StructuredLogger | None = None) -> bool:
        """Unpack every layer into ``out_dir`` unless this digest is already there.

        Returns ``True`` when layers were unpacked.
        """
        logger = logger or StructuredLogger()
        path = Path(out_dir)
        digest_file = path / DIGEST_MARKER
        if digest_file.exists():
            try:
                existing = digest_file.read_text(encoding="utf-8")
            except OSError as exc:
                raise ArchiveError(
                    "Failed to read digest file.",
                    context={"path": str(digest_file), "error": str(exc)},
                ) from exc
            if existing == self.digest:
                logger.log(
                    operation="fetch",
                    image=str(self.image),
                    level="trace",
                    message=f"Found existing digest file at '{digest_file}'",
                )
                return False

        logger.log(operation="fetch", image=str(self.image), level="debug", message="Unpacking layers")
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True)

        index = ImageIndex.from_bytes(
            self._read_blob(self.archive_path / "index.json"),
            where=str(self.archive_path / "index.json"),
        )
        if not index.manifests:
            raise ArchiveError("Empty OCI image.", context={"path": str(self.archive_path)})
        manifest_digest = parse_container_digest(index.manifests[0].digest, what="manifest")
        manifest_path = self.archive_path / blob_path(manifest_digest)
        layout = ManifestLayout.from_bytes(self._read_blob(manifest_path), where=str(manifest_path))

        for layer in layout.layers:
            self._unpack_layer(self.archive_path / blob_path(layer.digest), path)

        digest_file.write_text(self.digest, encoding="utf-8")
        return True

    def _read_blob(self, blob: Path) -> bytes:
        try:
            return blob.read_bytes()
        except OSError as exc:
            raise ArchiveError(
                "Failed to read OCI archive file.",
                hint="Delete the cached archive directory and fetch again.",
                context={"image": str(self.image), "path": str(blob), "error": str(exc)},
            ) from exc

    def _unpack_layer(self, layer_path: Path, out_dir: Path) -> None:
        try:
            with tarfile.open(layer_path, mode="r:*") as layer_archive:
                layer_archive.extractall(out_dir, filter="tar")
        except (OSError, tarfile.TarError) as exc:
            raise ArchiveError(
                "Failed to unpack layer of OCI image.",
                hint="Delete the cached archive directory and fetch again.",
                context={"image": str(self.image), "layer": str(layer_path), "error": str(exc)},
            ) from exc

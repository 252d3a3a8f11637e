"""Materialize locked kits onto disk for a build."""

from __future__ import annotations

from pathlib import Path

from kitlock.cache import OCIArchive, extraction_dir
from kitlock.errors import KitMetadataError, LockfileError
from kitlock.lockfile.model import Lock, LockedImage, manifest_digest
from kitlock.observability import StructuredLogger
from kitlock.oci import ManifestList, ManifestView, docker_architecture
from kitlock.project import LOCK_FILE, Project
from kitlock.registry import RegistryClient


def architecture_manifest(registry: RegistryClient, image: LockedImage, arch: str) -> ManifestView:
    """Select the manifest for ``arch`` from the image's manifest list."""
    docker_arch = docker_architecture(arch)
    manifest = image.manifest or registry.get_manifest(image.source)
    if manifest_digest(manifest) != image.digest:
        raise LockfileError(
            "Remote image no longer matches its locked digest.",
            hint=f"Run `update` to regenerate {LOCK_FILE}.",
            context={"image": str(image), "expected": image.digest, "actual": manifest_digest(manifest)},
        )
    manifest_list = ManifestList.from_bytes(manifest, source=image.source)
    selected = manifest_list.for_architecture(docker_arch)
    if selected is None:
        raise KitMetadataError(
            f"Could not find kit image for architecture '{docker_arch}' at {image.source}.",
            context={"image": str(image), "architecture": docker_arch},
        )
    return selected


def extract_kit(
    registry: RegistryClient,
    kits_dir: str | Path,
    image: LockedImage,
    arch: str,
    *,
    logger: StructuredLogger | None = None,
) -> Path:
    """Pull ``image`` for ``arch`` into the cache and unpack it under ``kits_dir``."""
    logger = logger or StructuredLogger()
    target_path = extraction_dir(kits_dir, image, arch)
    cache_path = Path(kits_dir) / "cache"
    logger.log(operation="fetch", image=str(image), message=f"Extracting kit to '{target_path}'")
    target_path.mkdir(parents=True, exist_ok=True)
    cache_path.mkdir(parents=True, exist_ok=True)

    manifest = architecture_manifest(registry, image, arch)
    archive = OCIArchive(image=image, digest=manifest.digest, cache_dir=cache_path)
    archive.pull_image(registry, logger=logger)
    archive.unpack_layers(target_path, logger=logger)
    return target_path


def write_external_kit_metadata(lock: Lock, path: str | Path) -> bool:
    """Write the canonical kit summary; skip when the file already has these bytes."""
    metadata_path = Path(path)
    encoded = lock.external_kit_metadata().to_canonical_json()
    if metadata_path.exists() and metadata_path.read_bytes() == encoded:
        return False
    metadata_path.parent.mkdir(parents=True, exist_ok=True)
    metadata_path.write_bytes(encoded)
    return True


def fetch_kits(
    lock: Lock,
    project: Project,
    arch: str,
    *,
    registry: RegistryClient,
    logger: StructuredLogger | None = None,
) -> Path:
    """Extract every kit in ``lock`` for ``arch`` and record the kit summary."""
    logger = logger or StructuredLogger()
    target_dir = project.external_kits_dir
    target_dir.mkdir(parents=True, exist_ok=True)
    logger.log(
        operation="fetch",
        image=None,
        message="Extracting kit dependencies.",
        extra={
            "dependencies": [str(image) for image in lock.kit],
            "fingerprint": lock.fingerprint(),
        },
    )
    for image in lock.kit:
        extract_kit(registry, target_dir, image, arch, logger=logger)

    written = write_external_kit_metadata(lock, project.external_kits_metadata)
    logger.log(
        operation="fetch",
        image=None,
        level="debug",
        message=(
            "Wrote external kit metadata" if written else "External kit metadata is unchanged"
        ),
        extra={"path": str(project.external_kits_metadata)},
    )
    return project.external_kits_metadata

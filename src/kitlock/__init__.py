"""Public package entrypoint for kitlock."""

from .errors import (
    ArchiveError,
    KitlockError,
    KitMetadataError,
    LockfileError,
    RegistryError,
    ResolutionError,
    ValidationError,
)
from .fetch import extract_kit, fetch_kits
from .kit import ImageMetadata, encode_kit_metadata
from .lockfile import Lock, LockedImage, Resolver, create_lock, load_lock
from .observability import StructuredLogger
from .project import Image, Project, Vendor, find_project, load_project
from .registry import CraneRegistry, InProcessRegistry, RegistryClient, registry_from_environment

__all__ = [
    "ArchiveError",
    "CraneRegistry",
    "Image",
    "ImageMetadata",
    "InProcessRegistry",
    "KitMetadataError",
    "KitlockError",
    "Lock",
    "LockedImage",
    "LockfileError",
    "Project",
    "RegistryClient",
    "RegistryError",
    "ResolutionError",
    "Resolver",
    "StructuredLogger",
    "ValidationError",
    "Vendor",
    "create_lock",
    "encode_kit_metadata",
    "extract_kit",
    "fetch_kits",
    "find_project",
    "load_lock",
    "load_project",
    "registry_from_environment",
]

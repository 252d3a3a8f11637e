"""Lockfile model, serialization, resolution and verification."""

from .io import parse_lockfile, read_lockfile, serialize_lockfile, write_lockfile
from .model import LOCK_SCHEMA_VERSION, ExternalKitMetadata, Lock, LockedImage, manifest_digest
from .resolve import Resolver, resolve
from .store import create_lock, load_lock, lock_diff

__all__ = [
    "ExternalKitMetadata",
    "LOCK_SCHEMA_VERSION",
    "Lock",
    "LockedImage",
    "Resolver",
    "create_lock",
    "load_lock",
    "lock_diff",
    "manifest_digest",
    "parse_lockfile",
    "read_lockfile",
    "resolve",
    "serialize_lockfile",
    "write_lockfile",
]

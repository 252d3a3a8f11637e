"""Create and verify the project lock file."""

from __future__ import annotations

import difflib

from kitlock.errors import LockfileError
from kitlock.lockfile.io import read_lockfile, serialize_lockfile, write_lockfile
from kitlock.lockfile.model import Lock
from kitlock.lockfile.resolve import Resolver
from kitlock.observability import StructuredLogger
from kitlock.project import LOCK_FILE, PROJECT_FILE, Project
from kitlock.registry import RegistryClient


def create_lock(
    project: Project,
    *,
    registry: RegistryClient,
    logger: StructuredLogger | None = None,
) -> Lock:
    """Resolve the project and write the result to its lock file."""
    logger = logger or StructuredLogger()
    logger.log(
        operation="lock",
        image=None,
        message="Resolving project references to create lock file",
    )
    lock = Resolver(registry=registry, logger=logger).resolve(project)
    lock_path = write_lockfile(lock, project.lock_path)
    logger.log(
        operation="lock",
        image=None,
        level="debug",
        message=f"Wrote lock file to '{lock_path}'",
        extra={"fingerprint": lock.fingerprint()},
    )
    return lock


def load_lock(
    project: Project,
    *,
    registry: RegistryClient,
    logger: StructuredLogger | None = None,
) -> Lock:
    """Read the lock file and require that it matches a fresh resolution."""
    logger = logger or StructuredLogger()
    lock_path = project.lock_path
    if not lock_path.exists():
        raise LockfileError(
            f"{LOCK_FILE} does not exist.",
            hint="Run `update` first to resolve and create the lockfile.",
            context={"path": str(lock_path)},
        )
    logger.log(
        operation="lock",
        image=None,
        level="debug",
        message=f"Loading existing lock file '{lock_path}'",
    )
    lock = read_lockfile(lock_path)

    logger.log(
        operation="lock",
        image=None,
        message="Resolving project references to check against lock file",
    )
    current = Resolver(registry=registry, logger=logger).resolve(project)
    # Every persisted field must match, not only source and digest.
    if current.to_payload() != lock.to_payload():
        raise LockfileError(
            f"Changes have occurred to {PROJECT_FILE} or the remote kit images "
            f"that require an update to {LOCK_FILE}.",
            hint="Run `update` to regenerate the lockfile and commit the result.",
            context={
                "path": str(lock_path),
                "expected": lock.fingerprint(),
                "actual": current.fingerprint(),
                "diff": lock_diff(lock, current),
            },
        )
    logger.log(
        operation="lock",
        image=None,
        level="debug",
        message="Lock file matches current resolution",
        extra={"fingerprint": lock.fingerprint()},
    )
    return lock


def lock_diff(stored: Lock, current: Lock) -> str:
    """Render a line-based diff of two locks for error reports."""
    return "".join(
        difflib.unified_diff(
            serialize_lockfile(stored).splitlines(keepends=True),
            serialize_lockfile(current).splitlines(keepends=True),
            fromfile=LOCK_FILE,
            tofile="resolved",
        )
    )

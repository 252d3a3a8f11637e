"""Lock a project's kits and extract them for one architecture."""

import logging
import sys
from pathlib import Path

from kitlock import create_lock, fetch_kits, find_project, load_lock, registry_from_environment


def fetch_for_build(arch: str = "x86_64") -> Path:
    project = find_project(Path.cwd())
    registry = registry_from_environment()
    if not project.lock_path.exists():
        create_lock(project, registry=registry)
    lock = load_lock(project, registry=registry)
    return fetch_kits(lock, project, arch, registry=registry)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    print(fetch_for_build(*sys.argv[1:2]))

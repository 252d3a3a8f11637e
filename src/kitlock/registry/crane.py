"""Registry access through the ``crane`` CLI.

``crane`` (from go-containerregistry) handles registry authentication through
the usual docker credential helpers, so this client only shells out and parses
its output.
"""

from __future__ import annotations

import json
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from kitlock.errors import RegistryError
from kitlock.registry.base import ImageConfig


@dataclass(slots=True)
class CraneRegistry:
    name: str = "crane"
    executable: str = "crane"

    def get_manifest(self, reference: str) -> bytes:
        return self._run(["manifest", reference], operation="get_manifest")

    def get_config(self, reference: str) -> ImageConfig:
        raw = self._run(["config", reference], operation="get_config")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RegistryError(
                "Registry returned an image config that is not valid JSON.",
                context={"operation": "get_config", "reference": reference, "error": str(exc)},
            ) from exc
        if not isinstance(payload, dict):
            raise RegistryError(
                "Registry returned an image config with invalid structure.",
                context={"operation": "get_config", "reference": reference},
            )
        container_config = payload.get("config")
        labels = container_config.get("Labels") if isinstance(container_config, dict) else None
        labels = labels or {}
        if not isinstance(labels, dict):
            raise RegistryError(
                "Image config `Labels` is not a mapping.",
                context={"operation": "get_config", "reference": reference},
            )
        return ImageConfig(labels={str(k): str(v) for k, v in labels.items()})

    def pull_oci_image(self, dest: Path, reference: str) -> None:
        self._run(["pull", "--format", "oci", reference, str(dest)], operation="pull_oci_image")

    def _run(self, argv: list[str], *, operation: str) -> bytes:
        executable = shutil.which(self.executable)
        if executable is None:
            raise RegistryError(
                f"Registry tool `{self.executable}` was not found in PATH.",
                hint="Install crane from go-containerregistry or set KITLOCK_CRANE.",
                context={"operation": operation},
            )
        command = [executable, *argv]
        completed = subprocess.run(
            command,
            check=False,
            capture_output=True,
        )
        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            raise RegistryError(
                "crane command failed.",
                hint="Check registry reachability, credentials and image reference.",
                context={
                    "operation": operation,
                    "argv": " ".join(command),
                    "returncode": str(completed.returncode),
                    "stderr": stderr[:2000],
                },
            )
        return completed.stdout

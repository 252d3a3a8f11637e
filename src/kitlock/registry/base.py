"""Protocol for registry clients used during resolution and fetch."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True, slots=True)
class ImageConfig:
    labels: dict[str, str] = field(default_factory=dict)


class RegistryClient(Protocol):
    name: str

    def get_manifest(self, reference: str) -> bytes:
        """Return the raw manifest (or manifest list) bytes for ``reference``."""

    def get_config(self, reference: str) -> ImageConfig:
        """Return the image configuration for a single-platform ``reference``."""

    def pull_oci_image(self, dest: Path, reference: str) -> None:
        """Save the image at ``reference`` as an OCI image layout under ``dest``."""

"""Registry clients."""

from __future__ import annotations

import os
from collections.abc import Mapping

from kitlock.errors import ValidationError

from .base import ImageConfig, RegistryClient
from .crane import CraneRegistry
from .inprocess import InProcessRegistry

IMAGE_TOOL_ENV = "KITLOCK_IMAGE_TOOL"
CRANE_ENV = "KITLOCK_CRANE"


def registry_from_environment(environ: Mapping[str, str] | None = None) -> RegistryClient:
    """Build the registry client selected by ``KITLOCK_IMAGE_TOOL`` (default ``crane``)."""
    env = os.environ if environ is None else environ
    tool = env.get(IMAGE_TOOL_ENV, "crane") or "crane"
    if tool == "crane":
        return CraneRegistry(executable=env.get(CRANE_ENV, "crane") or "crane")
    raise ValidationError(
        f"Unsupported registry tool `{tool}`.",
        hint=f"Unset {IMAGE_TOOL_ENV} or set it to `crane`.",
        context={"variable": IMAGE_TOOL_ENV},
    )


__all__ = [
    "CRANE_ENV",
    "CraneRegistry",
    "IMAGE_TOOL_ENV",
    "ImageConfig",
    "InProcessRegistry",
    "RegistryClient",
    "registry_from_environment",
]

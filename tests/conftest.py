"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from kitlock.kit import KIT_METADATA_LABEL, ImageMetadata, encode_kit_metadata
from kitlock.project import Image, Project, load_project
from kitlock.registry import InProcessRegistry

REGISTRY = "registry.example.com/kits"


@pytest.fixture
def registry() -> InProcessRegistry:
    """Provide an empty in-process registry."""
    return InProcessRegistry()


@pytest.fixture
def publish_kit(registry: InProcessRegistry) -> Callable[..., str]:
    """Publish a kit whose metadata declares ``sdk`` and ``kits``."""

    def _publish(
        name: str,
        version: str,
        *,
        sdk: Image,
        kits: Sequence[Image] = (),
        layers: Sequence[Mapping[str, bytes]] | None = None,
        registry_url: str = REGISTRY,
    ) -> str:
        metadata = ImageMetadata(name=name, version=version, sdk=sdk, kits=tuple(kits))
        if layers is None:
            layers = [{f"{name}/README": f"{name} {version}\n".encode()}]
        return registry.publish(
            registry_url,
            name,
            version,
            labels={KIT_METADATA_LABEL: encode_kit_metadata(metadata)},
            layers=layers,
        )

    return _publish


@pytest.fixture
def publish_sdk(registry: InProcessRegistry) -> Callable[[str, str], str]:
    """Publish an SDK image, which carries no kit metadata."""

    def _publish(name: str, version: str) -> str:
        return registry.publish(REGISTRY, name, version, layers=[{"sdk/VERSION": version.encode()}])

    return _publish


@pytest.fixture
def write_project(tmp_path: Path) -> Callable[..., Project]:
    """Write a Kit.toml declaring ``kits`` (and optionally ``sdk``) and load it."""

    def _write(
        *,
        kits: Sequence[Image] = (),
        sdk: Image | None = None,
        vendors: Mapping[str, str] | None = None,
    ) -> Project:
        project_dir = tmp_path / "project"
        project_dir.mkdir(exist_ok=True)
        lines = ["schema-version = 1", ""]
        for vendor, registry_url in (vendors or {"v1": REGISTRY}).items():
            lines += [f"[vendor.{vendor}]", f'registry = "{registry_url}"', ""]
        if sdk is not None:
            lines += ["[sdk]", *_image_lines(sdk), ""]
        for kit in kits:
            lines += ["[[kit]]", *_image_lines(kit), ""]
        (project_dir / "Kit.toml").write_text("\n".join(lines), encoding="utf-8")
        return load_project(project_dir)

    return _write


def _image_lines(image: Image) -> list[str]:
    return [
        f'name = "{image.name}"',
        f'version = "{image.version}"',
        f'vendor = "{image.vendor}"',
    ]

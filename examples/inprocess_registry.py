"""Resolve a kit graph against the in-memory registry."""

from pathlib import Path
from tempfile import TemporaryDirectory

from kitlock import Image, ImageMetadata, InProcessRegistry, create_lock, encode_kit_metadata, load_project
from kitlock.kit import KIT_METADATA_LABEL

REGISTRY = "registry.example.com/kits"
SDK = Image(name="bottlerocket-sdk", version="0.50.0", vendor="bottlerocket")


def publish_examples(registry: InProcessRegistry) -> None:
    registry.publish(REGISTRY, SDK.name, SDK.version, layers=[{"sdk/VERSION": b"0.50.0\n"}])
    for name, kits in (("core-kit", ()), ("extra-kit", (Image("core-kit", "2.1.0", "bottlerocket"),))):
        metadata = ImageMetadata(name=name, version="2.1.0", sdk=SDK, kits=kits)
        registry.publish(
            REGISTRY,
            name,
            "2.1.0",
            labels={KIT_METADATA_LABEL: encode_kit_metadata(metadata)},
            layers=[{f"{name}/README": b"kit\n"}],
        )


def lock_example_project() -> str:
    registry = InProcessRegistry()
    publish_examples(registry)
    with TemporaryDirectory() as tmp:
        project_file = Path(tmp) / "Kit.toml"
        project_file.write_text(
            "schema-version = 1\n\n"
            "[vendor.bottlerocket]\n"
            f'registry = "{REGISTRY}"\n\n'
            "[[kit]]\n"
            'name = "extra-kit"\n'
            'version = "2.1.0"\n'
            'vendor = "bottlerocket"\n',
            encoding="utf-8",
        )
        create_lock(load_project(project_file), registry=registry)
        return (project_file.parent / "Kit.lock").read_text(encoding="utf-8")


if __name__ == "__main__":
    print(lock_example_project())

"""Project configuration: declared vendors, SDK and kit references."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from kitlock.errors import ValidationError

PROJECT_FILE = "Kit.toml"
LOCK_FILE = "Kit.lock"
EXTERNAL_KITS_DIR = Path("build") / "external-kits"
EXTERNAL_KIT_METADATA = "external-kit-metadata.json"
SCHEMA_VERSION = 1

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


@dataclass(frozen=True, slots=True)
class Image:
    """An unresolved reference to a kit or SDK image published by a vendor."""

    name: str
    version: str
    vendor: str

    def __str__(self) -> str:
        return f"{self.name}-{self.version}@{self.vendor}"

    def to_payload(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version, "vendor": self.vendor}


@dataclass(frozen=True, slots=True)
class Vendor:
    registry: str


@dataclass(frozen=True, slots=True)
class Project:
    project_dir: Path
    vendors: dict[str, Vendor] = field(default_factory=dict)
    sdk: Image | None = None
    kits: tuple[Image, ...] = ()
    schema_version: int = SCHEMA_VERSION

    @property
    def lock_path(self) -> Path:
        return self.project_dir / LOCK_FILE

    @property
    def external_kits_dir(self) -> Path:
        return self.project_dir / EXTERNAL_KITS_DIR

    @property
    def external_kits_metadata(self) -> Path:
        return self.external_kits_dir / EXTERNAL_KIT_METADATA

    @property
    def cache_dir(self) -> Path:
        return self.external_kits_dir / "cache"

    def vendor(self, name: str) -> Vendor | None:
        return self.vendors.get(name)


def parse_image(payload: Any, *, where: str) -> Image:
    """Validate a ``{name, version, vendor}`` mapping into an :class:`Image`.

    Extra keys are ignored so that richer records (for example locked entries
    embedded in kit metadata) can be read as plain references.
    """
    if not isinstance(payload, dict):
        raise ValidationError(f"Invalid image reference in {where}.", context={"value": repr(payload)})
    name = _required_identifier(payload, "name", where=where)
    vendor = _required_identifier(payload, "vendor", where=where)
    version = _required_str(payload, "version", where=where)
    if not SEMVER_PATTERN.fullmatch(version):
        raise ValidationError(
            f"Invalid version `{version}` in {where}.",
            hint="Versions must be exact semantic versions such as 1.2.3.",
            context={"name": name, "vendor": vendor},
        )
    return Image(name=name, version=version, vendor=vendor)


def parse_project(raw: str, *, project_dir: str | Path) -> Project:
    try:
        payload = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(f"Invalid {PROJECT_FILE} TOML.", hint=str(exc)) from exc

    where = PROJECT_FILE
    schema_version = payload.get("schema-version")
    if schema_version != SCHEMA_VERSION:
        raise ValidationError(
            f"Unsupported {PROJECT_FILE} `schema-version` value.",
            hint=f"Set `schema-version = {SCHEMA_VERSION}`.",
            context={"value": repr(schema_version)},
        )

    vendors_raw = payload.get("vendor", {})
    if not isinstance(vendors_raw, dict):
        raise ValidationError(f"Invalid {where} `vendor` table.")
    vendors: dict[str, Vendor] = {}
    for vendor_name, vendor_data in vendors_raw.items():
        if not IDENTIFIER_PATTERN.fullmatch(vendor_name):
            raise ValidationError(f"Invalid vendor name `{vendor_name}` in {where}.")
        if not isinstance(vendor_data, dict):
            raise ValidationError(f"Invalid {where} vendor `{vendor_name}` table.")
        registry = _required_str(vendor_data, "registry", where=f"{where} vendor `{vendor_name}`")
        vendors[vendor_name] = Vendor(registry=registry.rstrip("/"))

    sdk_raw = payload.get("sdk")
    sdk = parse_image(sdk_raw, where=f"{where} `sdk`") if sdk_raw is not None else None

    kits_raw = payload.get("kit", [])
    if not isinstance(kits_raw, list):
        raise ValidationError(f"Invalid {where} `kit` value.", hint="Use [[kit]] array tables.")
    kits = tuple(parse_image(item, where=f"{where} `kit`") for item in kits_raw)

    return Project(
        project_dir=Path(project_dir),
        vendors=vendors,
        sdk=sdk,
        kits=kits,
        schema_version=schema_version,
    )


def load_project(path: str | Path) -> Project:
    """Load a project from a ``Kit.toml`` path or the directory holding one."""
    project_path = Path(path)
    if project_path.is_dir():
        project_path = project_path / PROJECT_FILE
    try:
        raw = project_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ValidationError(
            f"{PROJECT_FILE} does not exist.",
            context={"path": str(project_path)},
        ) from exc
    return parse_project(raw, project_dir=project_path.resolve().parent)


def find_project(start: str | Path | None = None) -> Project:
    """Search ``start`` and its parents for a ``Kit.toml`` and load it."""
    origin = Path(start or Path.cwd()).resolve()
    for candidate in (origin, *origin.parents):
        if (candidate / PROJECT_FILE).is_file():
            return load_project(candidate / PROJECT_FILE)
    raise ValidationError(
        f"Unable to find {PROJECT_FILE}.",
        hint="Run from inside a project or pass the project path explicitly.",
        context={"start": str(origin)},
    )


def _required_str(payload: dict[str, Any], key: str, *, where: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid {where} `{key}` value.")
    return value


def _required_identifier(payload: dict[str, Any], key: str, *, where: str) -> str:
    value = _required_str(payload, key, where=where)
    if not IDENTIFIER_PATTERN.fullmatch(value):
        raise ValidationError(
            f"Invalid {where} `{key}` identifier `{value}`.",
            hint="Identifiers may contain letters, digits, '.', '_' and '-'.",
        )
    return value

"""Kit materialization APIs."""

from .kits import architecture_manifest, extract_kit, fetch_kits, write_external_kit_metadata

__all__ = ["architecture_manifest", "extract_kit", "fetch_kits", "write_external_kit_metadata"]

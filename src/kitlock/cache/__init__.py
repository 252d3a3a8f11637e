"""Content-addressed OCI archive cache."""

from .store import DIGEST_MARKER, OCIArchive, archive_dir, extraction_dir

__all__ = ["DIGEST_MARKER", "OCIArchive", "archive_dir", "extraction_dir"]

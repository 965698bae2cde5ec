"""
Version catalog service for decompgit.

Lists every known game version with its kind and release time. The
manifest is fetched on every run; the cached copy only serves
read-only commands that ask for it explicitly.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..domain.version import GameVersion, VersionSet
from ..exit_codes import CatalogError
from ..infra.file_store import FileStore
from ..infra.manifest_client import ManifestClient, ManifestError

logger = logging.getLogger(__name__)

CACHE_FILENAME = "version_manifest.json"


def parse_versions(entries: List[Dict[str, Any]]) -> VersionSet:
    """
    Turn raw manifest entries into a VersionSet.

    Malformed entries are skipped with a warning.
    """
    versions = []
    for entry in entries:
        try:
            versions.append(GameVersion.from_manifest(entry))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed manifest entry {entry!r}: {e}")
    return VersionSet(versions)


class VersionCatalog:
    """
    Source of all known versions.

    Example:
        catalog = VersionCatalog(ManifestClient(), cache_dir=Path(".cache"))
        versions = catalog.list_versions()
    """

    def __init__(self, client: Optional[ManifestClient] = None, cache_dir: Optional[Path] = None):
        """
        Initialize VersionCatalog.

        Args:
            client: Manifest client (creates default if None)
            cache_dir: Directory for the manifest cache, no cache if None
        """
        self.client = client or ManifestClient()
        self.cache = FileStore(Path(cache_dir) / CACHE_FILENAME) if cache_dir else None

    def list_versions(self, offline: bool = False) -> VersionSet:
        """
        Get the full catalog, sorted by release time.

        Args:
            offline: Read the cached manifest instead of fetching

        Raises:
            CatalogError: If the manifest cannot be fetched, or no cache
                exists in offline mode
        """
        if offline:
            return self._from_cache()

        try:
            entries = self.client.fetch()
        except ManifestError as e:
            raise CatalogError(str(e)) from e

        if self.cache is not None:
            try:
                self.cache.write({
                    'fetched_at': datetime.now(timezone.utc).isoformat(),
                    'versions': entries,
                })
            except OSError as e:
                logger.warning(f"Could not write manifest cache {self.cache.path}: {e}")

        versions = parse_versions(entries)
        logger.info(f"Version manifest lists {len(versions)} versions")
        return versions

    def _from_cache(self) -> VersionSet:
        data = self.cache.read() if self.cache is not None else None
        if not isinstance(data, dict) or not isinstance(data.get('versions'), list):
            raise CatalogError("No cached version manifest, run without --offline first")
        logger.info(f"Using cached version manifest from {data.get('fetched_at', 'unknown time')}")
        return parse_versions(data['versions'])

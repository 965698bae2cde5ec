"""
Version manifest client infrastructure for decompgit.

Fetches the list of every released game version from the public
launcher metadata service. No authentication needed.
"""

import logging
from typing import Any, Dict, List

import requests

logger = logging.getLogger(__name__)

# Launcher metadata service, v2 manifest
DEFAULT_MANIFEST_URL = "https://piston-meta.mojang.com/mc/game/version_manifest_v2.json"


class ManifestError(Exception):
    """The manifest could not be fetched or is malformed."""


class ManifestClient:
    """
    Client for the version manifest endpoint.

    Example:
        client = ManifestClient()
        for entry in client.fetch():
            print(entry["id"], entry["type"], entry["releaseTime"])
    """

    def __init__(self, url: str = DEFAULT_MANIFEST_URL, timeout: int = 30):
        """
        Initialize ManifestClient.

        Args:
            url: Manifest URL
            timeout: HTTP request timeout in seconds
        """
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
        })

    def fetch(self) -> List[Dict[str, Any]]:
        """
        Fetch the raw version entries.

        Returns:
            List of manifest entries ({id, type, releaseTime, ...})

        Raises:
            ManifestError: On network failure or unexpected content
        """
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise ManifestError(f"Version manifest request failed: {e}") from e
        except ValueError as e:
            raise ManifestError(f"Version manifest returned invalid JSON: {e}") from e

        versions = data.get('versions') if isinstance(data, dict) else None
        if not isinstance(versions, list):
            raise ManifestError("Version manifest has no 'versions' list")

        logger.debug(f"Manifest: {len(versions)} versions from {self.url}")
        return versions

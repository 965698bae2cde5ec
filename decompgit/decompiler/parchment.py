"""
Parchment mapping releases for decompgit.

Parchment publishes parameter names and javadoc for a handful of game
versions. Every other version uses the mappings of the newest supported
version released at or before it.
"""

import logging
from typing import Dict, Optional

from ..domain.version import VersionSet

logger = logging.getLogger(__name__)

# Supported game version -> Parchment release, oldest first
PARCHMENT_VERSIONS: Dict[str, str] = {
    "1.16.5": "2022.03.06",
    "1.17.1": "2021.12.12",
    "1.18.2": "2022.11.06",
    "1.19.2": "2022.11.27",
    "1.19.3": "2023.06.25",
    "1.19.4": "2023.06.26",
    "1.20.1": "2023.09.03",
    "1.20.2": "2023.12.10",
    "1.20.3": "2023.12.31",
    "1.20.4": "2024.04.14",
    "1.20.6": "2024.06.16",
    "1.21": "2024.07.28",
}


def index_parchment_versions(catalog: VersionSet) -> Dict[str, Optional[str]]:
    """
    Map every catalog version to the Parchment game version it uses.

    Args:
        catalog: All versions, in release order

    Returns:
        Version identifier -> supported game version, or None for
        versions older than the first supported one
    """
    result: Dict[str, Optional[str]] = {}
    current: Optional[str] = None
    for version in catalog:
        if version.identifier in PARCHMENT_VERSIONS:
            current = version.identifier
        result[version.identifier] = current

    missing = [v for v in PARCHMENT_VERSIONS if v not in catalog]
    if len(catalog) and missing:
        logger.warning(f"Parchment versions not in the version manifest: {', '.join(missing)}")
    return result

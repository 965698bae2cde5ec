"""
Version selection for decompgit.

Applies the configured range and flags to the catalog.
"""

from ..domain.version import GameVersion, TargetPolicy, VersionSet
from ..exit_codes import InvalidRangeError


def select_versions(catalog: VersionSet, policy: TargetPolicy) -> VersionSet:
    """
    Select the versions that belong in the repository.

    A version is selected when its release time lies between those of
    min_version and max_version (inclusive), it is a release or
    snapshots are included, and it is not an April Fools version when
    those are excluded. The result keeps the catalog's
    (release time, identifier) order.

    Raises:
        InvalidRangeError: If either bound is not in the catalog, or
            min_version was released after max_version
    """
    minimum = catalog.get(policy.min_version)
    maximum = catalog.get(policy.max_version)

    if minimum is None and maximum is None:
        raise InvalidRangeError(
            f"Neither minimum version {policy.min_version} nor maximum version "
            f"{policy.max_version} found in version manifest"
        )
    if minimum is None:
        raise InvalidRangeError(f"Minimum version {policy.min_version} not found in version manifest")
    if maximum is None:
        raise InvalidRangeError(f"Maximum version {policy.max_version} not found in version manifest")
    if minimum.release_time > maximum.release_time:
        raise InvalidRangeError(
            f"Minimum version {minimum.identifier} ({minimum.release_time.isoformat()}) was released "
            f"after maximum version {maximum.identifier} ({maximum.release_time.isoformat()})"
        )

    def in_range(version: GameVersion) -> bool:
        if not minimum.release_time <= version.release_time <= maximum.release_time:
            return False
        if not (policy.include_snapshots or version.is_release):
            return False
        return not (policy.exclude_april_fools and version.is_april_fools)

    return catalog.filter(in_range)

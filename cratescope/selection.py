"""
Version selection over a crate's published versions.

All functions here are pure single-pass scans over `metadata.versions`; they
never mutate the metadata and never raise (PackageMetadata always holds at
least one version, and every version was parsed when the record was built).
"""
import enum
from typing import Optional

from .models import PackageMetadata, VersionRecord


class SelectPolicy(enum.Enum):
    LATEST = "latest"
    HIGHEST = "highest"
    HIGHEST_NORMAL = "highest-normal"
    EARLIEST = "earliest"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


def earliest_version(metadata: PackageMetadata) -> VersionRecord:
    """First version ever published. May be yanked."""
    return metadata.versions[0]


def most_recent_version(metadata: PackageMetadata) -> VersionRecord:
    """Last version published, even if yanked or lower than an older release."""
    return metadata.versions[-1]


def highest_version(metadata: PackageMetadata) -> VersionRecord:
    """
    Highest version by semver ordering across ALL versions, pre-releases and
    yanked ones included. On equal precedence the earlier published wins.
    """
    best = metadata.versions[0]
    for record in metadata.versions[1:]:
        if record.semver > best.semver:
            best = record
    return best


def highest_normal_version(metadata: PackageMetadata) -> Optional[VersionRecord]:
    """
    Highest version that is neither a pre-release nor yanked, or None when
    every version is one or the other.
    """
    best: Optional[VersionRecord] = None
    for record in metadata.versions:
        if record.yanked or record.is_prerelease:
            continue
        if best is None or record.semver > best.semver:
            best = record
    return best


def highest_normal_or_highest(metadata: PackageMetadata) -> VersionRecord:
    return highest_normal_version(metadata) or highest_version(metadata)


def select_version(metadata: PackageMetadata, policy: SelectPolicy) -> Optional[VersionRecord]:
    """
    Pick one version according to `policy`.

    Returns None for SelectPolicy.NONE, and for HIGHEST_NORMAL when no normal
    version exists; callers decide whether to fall back to highest_version.
    """
    if policy is SelectPolicy.LATEST:
        return most_recent_version(metadata)
    if policy is SelectPolicy.HIGHEST:
        return highest_version(metadata)
    if policy is SelectPolicy.HIGHEST_NORMAL:
        return highest_normal_version(metadata)
    if policy is SelectPolicy.EARLIEST:
        return earliest_version(metadata)
    return None

"""
Minimum toolchain (rust_version) implied by one crate version's direct
dependencies.

For every dependency of the chosen version:

  1. Look the dependency up on the metadata source. If the source does not
     have it, warn and move on; one missing crate does not sink the report.
  2. Walk its versions IN PUBLISH ORDER and stop at the first one whose
     version satisfies the requirement. That version's rust_version is the
     answer. First match, not best match: we do not go looking for the lowest
     or highest rust_version among all matching versions.
  3. No matching version, or a match that declares no rust_version, gives
     "unspecified".

The minimum for the whole set is the most demanding (highest) resolved
value. Dependencies that could not be resolved are left out of that maximum,
but their presence sets `warning`: the minimum is then only a lower bound.

Nothing here caches or mutates; resolving the same inputs twice gives the
same report.
"""
import enum
import logging
from typing import List, Optional, Tuple

from semantic_version import Version

from .errors import InvalidInput
from .index import MetadataSource
from .models import DependencySpec, PackageMetadata, VersionRecord
from .selection import SelectPolicy, highest_version, select_version
from .versioning import parse_requirement, parse_toolchain_version, requirement_matches

logger = logging.getLogger(__name__)


class DependencyStatus(enum.Enum):
    RESOLVED = "resolved"
    UNSPECIFIED = "unspecified"
    MISSING = "missing"


class MinimumKind(enum.Enum):
    SPECIFIED = "specified"
    UNSPECIFIED = "unspecified"
    NO_DEPENDENCIES = "no-dependencies"


class DependencyToolchain:
    """
    Outcome for one dependency.

     - status: RESOLVED, UNSPECIFIED (no match, or match without rust_version)
       or MISSING (the source does not have the crate at all)
     - matched_version: the version string step 2 stopped at, if any
     - toolchain_version: the declared rust_version, only when RESOLVED
    """
    __slots__ = ("dependency", "status", "matched_version", "toolchain_version")

    def __init__(self, dependency: DependencySpec, status: DependencyStatus,
                 matched_version: Optional[str] = None,
                 toolchain_version: Optional[str] = None):
        self.dependency = dependency
        self.status = status
        self.matched_version = matched_version
        self.toolchain_version = toolchain_version

    @property
    def parsed_toolchain_version(self) -> Optional[Version]:
        if self.toolchain_version is None:
            return None
        return parse_toolchain_version(self.toolchain_version)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyToolchain):
            return NotImplemented
        return (
            self.dependency == other.dependency
            and self.status == other.status
            and self.matched_version == other.matched_version
            and self.toolchain_version == other.toolchain_version
        )

    def __repr__(self) -> str:
        return (
            f"<DependencyToolchain {self.dependency.crate_name} {self.dependency.req} "
            f"{self.status.value} {self.toolchain_version}>"
        )


class ToolchainMinimum:
    """
    Aggregate over a dependency set. `version` is the declared string of the
    most demanding dependency, set only when kind is SPECIFIED.
    """
    __slots__ = ("kind", "version", "warning")

    def __init__(self, kind: MinimumKind, version: Optional[str] = None, warning: bool = False):
        self.kind = kind
        self.version = version
        self.warning = warning

    @property
    def is_unspecified(self) -> bool:
        return self.kind is MinimumKind.UNSPECIFIED

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ToolchainMinimum):
            return NotImplemented
        return (self.kind, self.version, self.warning) == (other.kind, other.version, other.warning)

    def __repr__(self) -> str:
        return f"ToolchainMinimum({self.kind.value}, {self.version!r}, warning={self.warning})"


def first_matching_version(metadata: PackageMetadata, requirement: str) -> Optional[VersionRecord]:
    req = parse_requirement(requirement)
    for record in metadata.versions:
        if requirement_matches(req, record.semver):
            return record
    return None


def resolve_dependency(source: MetadataSource, dependency: DependencySpec) -> DependencyToolchain:
    metadata = source.fetch(dependency.crate_name)
    if metadata is None:
        logger.warning(
            "Dependency %s not found on %s, skipping it.",
            dependency.crate_name, source.describe(),
        )
        return DependencyToolchain(dependency, DependencyStatus.MISSING)

    record = first_matching_version(metadata, dependency.req)
    if record is None:
        logger.debug("No version of %s matches %s", dependency.crate_name, dependency.req)
        return DependencyToolchain(dependency, DependencyStatus.UNSPECIFIED)
    if record.rust_version is None:
        return DependencyToolchain(dependency, DependencyStatus.UNSPECIFIED, record.version)
    return DependencyToolchain(
        dependency, DependencyStatus.RESOLVED, record.version, record.rust_version
    )


def aggregate_minimum(results: List[DependencyToolchain]) -> ToolchainMinimum:
    if not results:
        return ToolchainMinimum(MinimumKind.NO_DEPENDENCIES)

    best: Optional[Tuple[Version, str]] = None
    warning = False
    for result in results:
        if result.status is not DependencyStatus.RESOLVED:
            warning = True
            continue
        parsed = result.parsed_toolchain_version
        if best is None or parsed > best[0]:
            best = (parsed, result.toolchain_version)

    if best is None:
        return ToolchainMinimum(MinimumKind.UNSPECIFIED, warning=warning)
    return ToolchainMinimum(MinimumKind.SPECIFIED, best[1], warning=warning)


def resolve_dependencies(source: MetadataSource,
                         dependencies: List[DependencySpec]) -> Tuple[List[DependencyToolchain], ToolchainMinimum]:
    results = [resolve_dependency(source, dep) for dep in dependencies]
    return results, aggregate_minimum(results)


class ToolchainReport:
    """Everything the `toolchain` command prints for one crate version."""
    __slots__ = ("crate", "policy", "record", "dependencies", "minimum")

    def __init__(self, crate: str, policy: SelectPolicy, record: VersionRecord,
                 dependencies: List[DependencyToolchain], minimum: ToolchainMinimum):
        self.crate = crate
        self.policy = policy
        self.record = record
        self.dependencies = dependencies
        self.minimum = minimum


def resolve_toolchain(source: MetadataSource, metadata: PackageMetadata,
                      policy: SelectPolicy = SelectPolicy.LATEST) -> ToolchainReport:
    """
    Build the toolchain report for the version of `metadata` picked by
    `policy`. HIGHEST_NORMAL falls back to the highest version when the crate
    has no normal release.
    """
    if policy is SelectPolicy.NONE:
        raise InvalidInput("A version must be selected to resolve its toolchain requirements")

    record = select_version(metadata, policy)
    if record is None:
        logger.warning("No normal version found for crate %s, using the highest version.",
                       metadata.name)
        record = highest_version(metadata)

    logger.info("Resolving toolchain requirements of %s %s (%d dependencies)",
                metadata.name, record.version, len(record.dependencies))
    results, minimum = resolve_dependencies(source, record.dependencies)
    return ToolchainReport(metadata.name, policy, record, results, minimum)

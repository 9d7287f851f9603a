"""Plain-text reports printed by the command line."""
from typing import List

from .mirror import MirrorSummary
from .models import PackageMetadata
from .selection import (
    earliest_version,
    highest_normal_or_highest,
    highest_version,
    most_recent_version,
)
from .toolchain import DependencyStatus, MinimumKind, ToolchainReport

LINE_CHAR = "─"
VERSIONS_HEADER = "Crate versions for"
MIRROR_HEADER = "Local registry set up for"
TOOLCHAIN_HEADER = "Rust versions for"


def header(title: str, crate: str) -> str:
    text = f"{title} {crate}."
    return f"\n  {text}\n  {LINE_CHAR * len(text)}\n"


def bare_version(metadata: PackageMetadata, recent: bool = False, highest: bool = False,
                 normal: bool = False) -> str:
    """One version string and nothing else: recent, highest, normal, else earliest."""
    if recent:
        return most_recent_version(metadata).version
    if highest:
        return highest_version(metadata).version
    if normal:
        return highest_normal_or_highest(metadata).version
    return earliest_version(metadata).version


def version_list(metadata: PackageMetadata) -> str:
    rows = [" Yanked  Version"]
    for record in metadata.versions:
        rows.append(f"    {'Yes' if record.yanked else ' No'}    {record.version}")
    return "".join(f"   {row}\n" for row in rows)


def versions_report(
    metadata: PackageMetadata,
    earliest: bool = False,
    normal: bool = False,
    highest: bool = False,
    recent: bool = False,
    listing: bool = False,
) -> str:
    lines: List[str] = [header(VERSIONS_HEADER, metadata.name)]
    if earliest:
        lines.append(f"   Earliest version: {earliest_version(metadata).version}\n")
    if normal:
        lines.append(f"   Highest normal version: {highest_normal_or_highest(metadata).version}\n")
    if highest:
        lines.append(f"   Highest version: {highest_version(metadata).version}\n")
    if recent:
        lines.append(f"   Most recent version: {most_recent_version(metadata).version}\n")
    if listing:
        lines.append(version_list(metadata))
    return "".join(lines)


def toolchain_report(report: ToolchainReport) -> str:
    record = report.record
    own = record.rust_version or "not specified"
    lines: List[str] = [
        header(TOOLCHAIN_HEADER, report.crate),
        f"   Selected version ({report.policy}): {record.version} (Rust version: {own})\n",
    ]

    if report.dependencies:
        width = max(len(r.dependency.crate_name) for r in report.dependencies)
        for result in report.dependencies:
            dep = result.dependency
            if result.status is DependencyStatus.RESOLVED:
                detail = f"{result.toolchain_version} (from {result.matched_version})"
            elif result.status is DependencyStatus.MISSING:
                detail = "not found on index"
            else:
                detail = "not specified"
            lines.append(f"    {dep.crate_name:<{width}}  {dep.req:<12} {detail}\n")

    minimum = report.minimum
    if minimum.kind is MinimumKind.SPECIFIED:
        text = f"   Minimum Rust version: {minimum.version}"
    elif minimum.kind is MinimumKind.UNSPECIFIED:
        text = "   Minimum Rust version: not specified by any dependency"
    else:
        text = "   Minimum Rust version: no dependencies"
    if minimum.warning:
        text += " (WARNING: Some dependencies do not specify a Rust version)"
    lines.append(text + "\n")
    return "".join(lines)


def mirror_report(summary: MirrorSummary) -> str:
    text = header(MIRROR_HEADER, summary.crate)
    if summary.packages:
        text += "  Crates added:\n    " + "\n    ".join(summary.packages)
    text += f"\n  Total bytes written: {summary.disk_usage}\n"
    return text

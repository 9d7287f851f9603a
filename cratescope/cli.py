import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .archive import ArchiveSource
from .config import CRATES_IO_SPARSE_URL, DEFAULT_MIRROR_LOCATION, DEFAULT_TIMEOUT, ClientConfig
from .errors import CrateNotFoundOnIndex, CrateScopeError
from .index import MetadataSource
from .mirror import build_mirror
from .models import PackageMetadata, PackageName
from .output import bare_version, mirror_report, toolchain_report, versions_report
from .selection import SelectPolicy
from .toolchain import resolve_toolchain

logger = logging.getLogger("cratescope")

EXIT_FAILURE = 1

POLICY_CHOICES = [p.value for p in SelectPolicy]


def setup_logging(verbosity: int) -> None:
    """
    -q -> errors only, default -> warnings, -v -> info, -vv -> debug.
    Timestamps in whole seconds, no module path.
    """
    if verbosity < 0:
        level = logging.ERROR
    elif verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="[%(asctime)s %(levelname)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cratescope",
        description="Look up crate versions, work out minimum Rust versions, "
                    "and build small local registries for offline tests.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More logging; repeat for debug output.")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only log errors.")
    parser.add_argument("--index-url", type=str, default=CRATES_IO_SPARSE_URL,
                        help="Base URL of the sparse index.")
    parser.add_argument("--cache-dir", type=Path, default=None,
                        help="Cache fetched index entries in this directory.")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help="HTTP timeout in seconds.")
    parser.add_argument(
        "--local", type=Path, default=None, metavar="PATH",
        help="Read crate metadata from a local mirror instead of the remote index.\n"
             "Nothing is fetched over the network in this mode.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    versions = sub.add_parser("versions", help="Show key versions of a crate.")
    versions.add_argument("crate", help="The name of the crate")
    versions.add_argument("-b", "--bare", action="store_true",
                          help="Print one bare version number (recent, highest, normal, "
                               "otherwise earliest).")
    versions.add_argument("-e", "--earliest", action="store_true",
                          help="First version ever published. May be yanked.")
    versions.add_argument("-n", "--normal", action="store_true",
                          help="Highest version excluding pre-release and yanked versions.")
    versions.add_argument("-t", "--top", dest="highest", action="store_true",
                          help="The highest version as per semantic versioning.")
    versions.add_argument("-r", "--recent", action="store_true",
                          help="The last release by date, even if yanked or lower than highest.")
    versions.add_argument("-l", "--list", dest="listing", action="store_true",
                          help="List all versions of the crate.")
    versions.add_argument("-k", "--key", action="store_true",
                          help="List key values (equivalent to -entr).")
    versions.add_argument("-a", "--all", action="store_true",
                          help="List all versions and key values (equivalent to -entrl).")

    toolchain = sub.add_parser("toolchain",
                               help="Minimum Rust version implied by a crate's dependencies.")
    toolchain.add_argument("crate", help="The name of the crate")
    toolchain.add_argument("-s", "--select", type=SelectPolicy, default=SelectPolicy.LATEST,
                           choices=[p for p in SelectPolicy if p is not SelectPolicy.NONE],
                           help="Which version of the crate to inspect (default: latest).")

    mirror = sub.add_parser("mirror", help="Set up a local registry containing a crate.")
    mirror.add_argument("crate", help="The name of the crate")
    mirror.add_argument("-r", "--no-replace", action="store_true",
                        help="Do not replace the registry if one already exists.")
    mirror.add_argument("-d", "--dependencies", type=SelectPolicy, default=SelectPolicy.LATEST,
                        choices=list(SelectPolicy),
                        help="Also add the dependencies of this version (default: latest).")
    mirror.add_argument("-l", "--location", type=Path, default=Path(DEFAULT_MIRROR_LOCATION),
                        help=f"The location for the local registry (default: {DEFAULT_MIRROR_LOCATION}).")
    return parser


def make_source(args: argparse.Namespace, config: ClientConfig) -> MetadataSource:
    if args.local is not None:
        return MetadataSource.local(args.local)
    return MetadataSource.remote(config)


def fetch_or_fail(source: MetadataSource, crate: str) -> PackageMetadata:
    metadata = source.fetch(PackageName(crate))
    if metadata is None:
        raise CrateNotFoundOnIndex(crate)
    return metadata


def run_versions(args: argparse.Namespace, source: MetadataSource) -> str:
    logger.info("Getting details for crate: %s", args.crate)
    metadata = fetch_or_fail(source, args.crate)

    if args.bare:
        return bare_version(metadata, recent=args.recent, highest=args.highest, normal=args.normal)

    key = args.key or args.all
    return versions_report(
        metadata,
        earliest=args.earliest or key,
        normal=args.normal or key,
        highest=args.highest or key,
        recent=args.recent or key,
        listing=args.listing or args.all,
    )


def run_toolchain(args: argparse.Namespace, source: MetadataSource) -> str:
    logger.info("Getting details for crate: %s", args.crate)
    metadata = fetch_or_fail(source, args.crate)
    return toolchain_report(resolve_toolchain(source, metadata, args.select))


def run_mirror(args: argparse.Namespace, source: MetadataSource, config: ClientConfig) -> str:
    summary = build_mirror(
        PackageName(args.crate),
        source,
        args.location,
        policy=args.dependencies,
        replace_if_exists=not args.no_replace,
        archive_source=ArchiveSource(config),
    )
    return mirror_report(summary)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(-1 if args.quiet else args.verbose)

    config = ClientConfig(
        index_url=args.index_url,
        cache_dir=args.cache_dir,
        timeout=args.timeout,
    )

    try:
        source = make_source(args, config)
        if args.command == "versions":
            output = run_versions(args, source)
        elif args.command == "toolchain":
            output = run_toolchain(args, source)
        else:
            output = run_mirror(args, source, config)
    except CrateScopeError as e:
        print(f"Error ({type(e).__name__}): {e}", file=sys.stderr)
        return EXIT_FAILURE

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

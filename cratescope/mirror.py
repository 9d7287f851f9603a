"""
Building a minimal local mirror for offline tests.

A MirrorBuilder owns one mirror directory for its lifetime and moves through

    EMPTY --initialize--> INITIALIZED --finalize--> FINALIZED

`insert` and the cascade helpers are only valid while INITIALIZED. Calling
anything out of order raises NotInitialized instead of guessing.

Layout written (the cargo "local registry" layout, readable again through
cratescope.index.LocalMirror):

    <root>/index/<prefix>/<name>     JSON lines, same as the remote index
    <root>/<name>-<version>.crate    every version's archive, checksum verified
    <root>/config.json               written by finalize()

There is no rollback: if an insert fails half way, whatever was written stays
on disk and the builder stays INITIALIZED.
"""
import enum
import json
import logging
import shutil
from pathlib import Path
from typing import List, Optional, Union

from .archive import ArchiveSource
from .disk_usage import DiskUsage
from .errors import AlreadyExists, CrateNotFoundOnIndex, InvalidInput, NotInitialized, StorageError
from .index import LOCAL_ARCHIVE_TEMPLATE, IndexConfig, MetadataSource, NameLike
from .models import DependencySpec, PackageMetadata, index_path
from .selection import SelectPolicy, select_version

logger = logging.getLogger(__name__)


class MirrorState(enum.Enum):
    EMPTY = "empty"
    INITIALIZED = "initialized"
    FINALIZED = "finalized"


class MirrorSummary:
    """What a finished build reports: the crates added, in order, and bytes written."""
    __slots__ = ("crate", "location", "packages", "disk_usage")

    def __init__(self, crate: str, location: Path, packages: List[str], disk_usage: DiskUsage):
        self.crate = crate
        self.location = location
        self.packages = packages
        self.disk_usage = disk_usage

    def __repr__(self) -> str:
        return f"<MirrorSummary {self.location} {self.packages} {self.disk_usage}>"


def _is_occupied(path: Path) -> bool:
    if not path.exists():
        return False
    if path.is_dir():
        return any(path.iterdir())
    return True


class MirrorBuilder:
    def __init__(
        self,
        location: Union[str, Path],
        index_config: IndexConfig,
        archive_source: Optional[ArchiveSource] = None,
        crate: str = "",
    ):
        self.location = Path(location)
        self.index_config = index_config
        self.archive_source = archive_source or ArchiveSource()
        self.crate = crate
        self.state = MirrorState.EMPTY
        self.packages: List[str] = []
        self.disk_usage = DiskUsage()

    def _require_initialized(self, operation: str) -> None:
        if self.state is not MirrorState.INITIALIZED:
            raise NotInitialized(
                f"Cannot {operation}: mirror at {self.location} is {self.state.value}, "
                f"it must be initialized (and not yet finalized)"
            )

    def initialize(self, replace_if_exists: bool = False) -> "MirrorBuilder":
        """
        Create an empty mirror at `location`.

        An existing file or non-empty directory there is an existing mirror.
        Without `replace_if_exists` that fails with AlreadyExists and nothing
        is touched. With it, the old tree is deleted for good first.
        """
        if self.state is MirrorState.FINALIZED:
            raise NotInitialized(f"Mirror at {self.location} is already finalized")

        path = self.location
        if _is_occupied(path):
            if not replace_if_exists:
                raise AlreadyExists(
                    f"A mirror (or other data) already exists at {path}. "
                    f"Choose another location or allow replacing it."
                )
            logger.warning("Mirror already exists at %s, replacing.", path)
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
            except OSError as e:
                raise StorageError(f"Cannot remove existing mirror at {path}: {e}")
            self.packages = []

        try:
            (path / "index").mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create mirror directory {path}: {e}")

        logger.debug("Created mirror at %s", path)
        self.state = MirrorState.INITIALIZED
        return self

    def insert(self, metadata: PackageMetadata) -> int:
        """
        Download, verify and store every version of `metadata`.

        All archives are fetched and checked before anything is written for
        this crate. Returns the number of archive bytes written.
        """
        self._require_initialized("insert")

        archives = []
        for record in metadata.versions:
            archives.append(self.archive_source.download_and_verify(record, self.index_config))
            logger.debug("Downloaded %s %s", record.name, record.version)

        index_file = self.location / "index" / index_path(metadata.name)
        written = 0
        try:
            index_file.parent.mkdir(parents=True, exist_ok=True)
            index_file.write_bytes(metadata.to_index_bytes())
            for archive in archives:
                (self.location / archive.filename).write_bytes(archive.data)
                written += archive.size
        except OSError as e:
            raise StorageError(f"Cannot write {metadata.name} into mirror {self.location}: {e}")
        finally:
            self.disk_usage += written

        self.packages.append(metadata.name)
        logger.debug("Inserted crate %s into mirror (%d bytes)", metadata.name, written)
        return written

    def cascade_dependencies(self, dependencies: List[DependencySpec], source: MetadataSource) -> None:
        """
        Insert each dependency's crate, one level deep only. A dependency the
        source does not know is skipped with a warning.
        """
        self._require_initialized("add dependencies")
        logger.debug("Adding %d dependencies", len(dependencies))

        for dependency in dependencies:
            metadata = source.fetch(dependency.crate_name)
            if metadata is None:
                logger.warning("Could not find dependency: %s, skipping.", dependency.crate_name)
                continue
            self.insert(metadata)

    def cascade_for(self, metadata: PackageMetadata, source: MetadataSource,
                    policy: SelectPolicy) -> None:
        """Cascade the dependencies of the version of `metadata` chosen by `policy`."""
        if policy is SelectPolicy.NONE:
            return
        record = select_version(metadata, policy)
        if record is None:
            logger.warning("No normal version found for crate: %s", metadata.name)
            return
        logger.debug("Adding dependencies for %s version %s", policy, record.version)
        self.cascade_dependencies(record.dependencies, source)

    def finalize(self) -> MirrorSummary:
        self._require_initialized("finalize")

        config = {"dl": LOCAL_ARCHIVE_TEMPLATE, "api": None}
        config_path = self.location / "config.json"
        try:
            config_path.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot write {config_path}: {e}")

        self.state = MirrorState.FINALIZED
        logger.info("Finalized mirror at %s with %d crate(s), %s",
                    self.location, len(self.packages), self.disk_usage)
        return self.summary()

    def summary(self) -> MirrorSummary:
        return MirrorSummary(self.crate, self.location, list(self.packages), self.disk_usage)


def build_mirror(
    name: NameLike,
    source: MetadataSource,
    location: Union[str, Path],
    policy: SelectPolicy = SelectPolicy.LATEST,
    replace_if_exists: bool = True,
    archive_source: Optional[ArchiveSource] = None,
) -> MirrorSummary:
    """Fetch `name`, put it and its selected dependencies into a new mirror."""
    logger.info("Setting up local mirror at %s and adding crate: %s", location, name)

    if source.kind == MetadataSource.LOCAL:
        target = Path(location).resolve()
        root = source.backend.root.resolve()
        if target == root or target in root.parents:
            raise InvalidInput(
                f"Cannot build a mirror at {location}: it would replace the local mirror "
                f"{source.backend.root} that is being read from. Choose another location."
            )

    metadata = source.fetch(name)
    if metadata is None:
        raise CrateNotFoundOnIndex(str(name))

    builder = MirrorBuilder(location, source.index_config(), archive_source, crate=metadata.name)
    builder.initialize(replace_if_exists)
    builder.insert(metadata)
    builder.cascade_for(metadata, source, policy)
    return builder.finalize()

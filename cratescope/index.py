"""
Where crate metadata comes from.

Two backends answer the same question ("what versions does crate X have?"):

 - RemoteSparseIndex: the crates.io style sparse HTTP index. Each crate is one
   file of JSON lines at <index_url>/<prefix>/<name>. Fetched files can be
   kept in a cache directory.
 - LocalMirror: a mirror on disk, as written by cratescope.mirror. Same file
   format, same paths, under <root>/index/. Never writes a cache.

MetadataSource wraps exactly one of the two and dispatches on which one it
holds. Callers (the toolchain resolver, the mirror builder, the CLI) only see
MetadataSource, so tests swap a LocalMirror in for the network without any
other change.

"Not found" is a return value (None), not an exception. Anything else that
goes wrong (network, bad JSON, unreadable files) raises.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import requests

from .config import ClientConfig
from .errors import IndexFormatError, IndexTransportError, StorageError
from .models import PackageMetadata, PackageName, index_path, index_prefix, to_package_name

logger = logging.getLogger(__name__)

# Statuses a sparse registry uses to say "no such crate".
NOT_FOUND_STATUSES = (404, 410, 451)

DOWNLOAD_MARKERS = ("{crate}", "{version}", "{prefix}", "{lowerprefix}", "{sha256-checksum}")

LOCAL_ARCHIVE_TEMPLATE = "{crate}-{version}.crate"

NameLike = Union[str, PackageName]


class IndexConfig:
    """
    The registry's config.json: where archives are downloaded from (`dl`) and
    the web API root (`api`, unused here but written back into mirrors).
    """
    __slots__ = ("dl", "api")

    def __init__(self, dl: str, api: Optional[str] = None):
        self.dl = dl
        self.api = api

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexConfig":
        if not isinstance(data, dict) or not data.get("dl"):
            raise IndexFormatError(f"Registry config.json has no 'dl' entry: {data!r}")
        return cls(dl=data["dl"], api=data.get("api"))

    def to_dict(self) -> Dict[str, Any]:
        return {"dl": self.dl, "api": self.api}

    def download_url(self, crate: str, version: str, checksum: str = "") -> str:
        """
        Expand the `dl` template for one crate version.

        If the template contains none of the known markers, cargo's rule
        applies: "/{crate}/{version}/download" is appended.
        """
        if not any(marker in self.dl for marker in DOWNLOAD_MARKERS):
            return f"{self.dl.rstrip('/')}/{crate}/{version}/download"

        prefix = index_prefix(crate)
        return (
            self.dl.replace("{crate}", crate)
            .replace("{version}", version)
            .replace("{prefix}", prefix)
            .replace("{lowerprefix}", prefix.lower())
            .replace("{sha256-checksum}", checksum)
        )


##############################################################################
# Remote sparse index
##############################################################################

class RemoteSparseIndex:
    def __init__(self, config: Optional[ClientConfig] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or ClientConfig()
        self.session = session or self.config.build_session()
        self._index_config: Optional[IndexConfig] = None

    @property
    def url(self) -> str:
        return self.config.index_url

    def _get(self, url: str) -> requests.Response:
        logger.debug("GET %s", url)
        try:
            return self.session.get(url, timeout=self.config.timeout)
        except requests.exceptions.RequestException as e:
            raise IndexTransportError(f"Failed to fetch {url}: {e}")

    def index_config(self) -> IndexConfig:
        if self._index_config is None:
            url = f"{self.url}config.json"
            response = self._get(url)
            if not response.ok:
                raise IndexTransportError(
                    f"HTTP {response.status_code} fetching registry config {url}"
                )
            try:
                data = response.json()
            except ValueError as e:
                raise IndexFormatError(f"Registry config {url} is not valid JSON: {e}")
            self._index_config = IndexConfig.from_dict(data)
        return self._index_config

    def cache_path(self, name: NameLike) -> Optional[Path]:
        if self.config.cache_dir is None:
            return None
        return self.config.cache_dir / index_path(str(name))

    def fetch_remote(self, name: NameLike, write_cache_entry: bool = True) -> Optional[PackageMetadata]:
        name = to_package_name(name)
        url = f"{self.url}{name.index_path()}"
        response = self._get(url)

        if response.status_code in NOT_FOUND_STATUSES:
            logger.debug("Crate %s not found on %s (HTTP %s)", name, self.url, response.status_code)
            return None
        if not response.ok:
            raise IndexTransportError(
                f"HTTP {response.status_code} fetching index entry for {name} from {url}"
            )

        body = response.content
        metadata = PackageMetadata.from_index_bytes(body)
        if metadata is not None and write_cache_entry:
            self._write_cache(name, body)
        return metadata

    def fetch_cached(self, name: NameLike) -> Optional[PackageMetadata]:
        path = self.cache_path(name)
        if path is None or not path.is_file():
            return None
        try:
            body = path.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read cache entry {path}: {e}")
        return PackageMetadata.from_index_bytes(body)

    def _write_cache(self, name: PackageName, body: bytes) -> None:
        path = self.cache_path(name)
        if path is None:
            return
        # Write to a temp file and rename, so two processes caching the same
        # crate at once each leave a complete file behind.
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            with os.fdopen(fd, "wb") as f:
                f.write(body)
            os.replace(tmp_name, path)
        except OSError as e:
            raise StorageError(f"Cannot write cache entry {path}: {e}")
        logger.debug("Cached index entry for %s at %s", name, path)


##############################################################################
# Local mirror
##############################################################################

class LocalMirror:
    """
    Read side of a mirror directory:

        <root>/index/fo/re/forestry      JSON lines, same as the remote index
        <root>/forestry-0.2.1.crate      archives
        <root>/config.json               written when the mirror was finalized
    """

    def __init__(self, root: Union[str, Path], validate: bool = False):
        self.root = Path(root)
        if not (self.root / "index").is_dir():
            raise StorageError(
                f"{self.root} is not a local mirror: no 'index' directory found.\n"
                f"Build one first with 'cratescope mirror <crate> --location {self.root}'."
            )
        if validate:
            self.validate()

    def index_file(self, name: NameLike) -> Path:
        return self.root / "index" / index_path(str(name))

    def archive_path(self, crate: str, version: str) -> Path:
        return self.root / LOCAL_ARCHIVE_TEMPLATE.format(crate=crate, version=version)

    def index_config(self) -> IndexConfig:
        return IndexConfig(
            dl=f"{self.root.resolve().as_uri()}/{LOCAL_ARCHIVE_TEMPLATE}",
            api=None,
        )

    def fetch(self, name: NameLike) -> Optional[PackageMetadata]:
        path = self.index_file(to_package_name(name))
        if not path.is_file():
            return None
        try:
            body = path.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read index entry {path}: {e}")
        return PackageMetadata.from_index_bytes(body)

    def iter_index_files(self) -> Iterator[Path]:
        for path in sorted((self.root / "index").rglob("*")):
            if path.is_file() and path.name != "config.json" and not path.name.startswith("."):
                yield path

    def validate(self) -> None:
        """Check that every indexed version has its archive next to the index."""
        missing: List[str] = []
        for path in self.iter_index_files():
            metadata = PackageMetadata.from_index_bytes(path.read_bytes())
            if metadata is None:
                continue
            for record in metadata.versions:
                if not self.archive_path(record.name, record.version).is_file():
                    missing.append(f"{record.name}-{record.version}")
        if missing:
            raise StorageError(
                f"Local mirror {self.root} is missing {len(missing)} archive(s): "
                + ", ".join(missing)
            )


##############################################################################
# The uniform source
##############################################################################

class MetadataSource:
    """Either a RemoteSparseIndex or a LocalMirror, behind one interface."""
    REMOTE = "remote"
    LOCAL = "local"

    __slots__ = ("kind", "backend")

    def __init__(self, kind: str, backend: Union[RemoteSparseIndex, LocalMirror]):
        if kind == self.REMOTE and not isinstance(backend, RemoteSparseIndex):
            raise TypeError("A remote source needs a RemoteSparseIndex backend")
        if kind == self.LOCAL and not isinstance(backend, LocalMirror):
            raise TypeError("A local source needs a LocalMirror backend")
        if kind not in (self.REMOTE, self.LOCAL):
            raise ValueError(f"Unknown metadata source kind {kind!r}")
        self.kind = kind
        self.backend = backend

    @classmethod
    def remote(cls, config: Optional[ClientConfig] = None,
               session: Optional[requests.Session] = None) -> "MetadataSource":
        return cls(cls.REMOTE, RemoteSparseIndex(config, session))

    @classmethod
    def local(cls, root: Union[str, Path], validate: bool = False) -> "MetadataSource":
        return cls(cls.LOCAL, LocalMirror(root, validate=validate))

    def fetch(self, name: NameLike, write_cache_entry: bool = True) -> Optional[PackageMetadata]:
        """
        Metadata for `name`, or None if the source does not have the crate.

        `write_cache_entry` only matters for the remote backend; a local
        mirror has nothing to cache.
        """
        if self.kind == self.REMOTE:
            return self.backend.fetch_remote(name, write_cache_entry)
        return self.backend.fetch(name)

    def cached(self, name: NameLike) -> Optional[PackageMetadata]:
        if self.kind == self.REMOTE:
            return self.backend.fetch_cached(name)
        return self.backend.fetch(name)

    def index_config(self) -> IndexConfig:
        return self.backend.index_config()

    def describe(self) -> str:
        if self.kind == self.REMOTE:
            return self.backend.url
        return str(self.backend.root)

    def __repr__(self) -> str:
        return f"MetadataSource({self.kind}, {self.describe()})"

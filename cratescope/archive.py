"""
Downloading .crate archives and checking them against the index.

The index records a sha256 ("cksum") for every published version. An archive
whose digest differs is never written anywhere: IntegrityError is raised and
it is up to the caller to try again or give up. We do not retry here.
"""
import hashlib
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from .config import ClientConfig
from .errors import ArchiveError, IntegrityError
from .index import IndexConfig
from .models import VersionRecord

logger = logging.getLogger(__name__)


class VerifiedArchive:
    """The bytes of one .crate archive whose sha256 matched the index."""
    __slots__ = ("name", "version", "data", "checksum")

    def __init__(self, name: str, version: str, data: bytes, checksum: str):
        self.name = name
        self.version = version
        self.data = data
        self.checksum = checksum

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def filename(self) -> str:
        return f"{self.name}-{self.version}.crate"

    def __repr__(self) -> str:
        return f"<VerifiedArchive {self.filename} {self.size} bytes>"


class ArchiveSource:
    """
    Fetches archives over HTTP(S), or straight from disk for file:// URLs,
    which is what a LocalMirror's config points at.
    """

    def __init__(self, config: Optional[ClientConfig] = None,
                 session: Optional[requests.Session] = None):
        self.config = config or ClientConfig()
        self.session = session or self.config.build_session()

    def fetch(self, url: str) -> bytes:
        parsed = urlparse(url)
        if parsed.scheme == "file":
            path = Path(url2pathname(parsed.path))
            try:
                return path.read_bytes()
            except OSError as e:
                raise ArchiveError(f"Cannot read archive {path}: {e}")

        try:
            response = self.session.get(url, timeout=self.config.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ArchiveError(f"Failed to download {url}: {e}")
        return response.content

    def download_and_verify(self, record: VersionRecord, index_config: IndexConfig) -> VerifiedArchive:
        url = index_config.download_url(record.name, record.version, record.checksum)
        logger.debug("Downloading %s %s from %s", record.name, record.version, url)

        data = self.fetch(url)
        digest = hashlib.sha256(data).hexdigest()
        if not record.checksum or digest != record.checksum.lower():
            raise IntegrityError(
                f"Checksum mismatch for {record.name} {record.version} from {url}:\n"
                f"  index declares {record.checksum or '(nothing)'}\n"
                f"  downloaded     {digest}\n"
                f"The archive was NOT written. Either the mirror/registry is corrupt "
                f"or the download was tampered with."
            )
        return VerifiedArchive(record.name, record.version, data, digest)

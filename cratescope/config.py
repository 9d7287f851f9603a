"""
Client configuration.

There is no module-level client: a ClientConfig is built once (by the CLI from
its flags, or directly by tests) and handed to whatever needs to talk HTTP.
"""
from pathlib import Path
from typing import Optional

import requests

from . import __version__

CRATES_IO_SPARSE_URL = "https://index.crates.io/"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MIRROR_LOCATION = "tests/local_registry"


class ClientConfig:
    """
    Settings shared by the remote index and the archive downloader.

     - index_url: base URL of the sparse index (trailing slash optional)
     - cache_dir: where fetched index files are cached, or None for no cache
     - timeout: seconds before a request is abandoned; hosts that never
       answer must fail, not hang
     - user_agent: sent with every request (crates.io asks clients to set one)
    """
    __slots__ = ("index_url", "cache_dir", "timeout", "user_agent")

    def __init__(
        self,
        index_url: str = CRATES_IO_SPARSE_URL,
        cache_dir: Optional[Path] = None,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None,
    ):
        if not index_url.endswith("/"):
            index_url += "/"
        self.index_url = index_url
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.timeout = timeout
        self.user_agent = user_agent or f"cratescope/{__version__}"

    def build_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["User-Agent"] = self.user_agent
        return session

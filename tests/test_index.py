import json
from unittest.mock import Mock

import pytest
import requests

from conftest import FORESTRY
from cratescope.config import ClientConfig
from cratescope.errors import IndexFormatError, IndexTransportError, InvalidName, StorageError
from cratescope.index import IndexConfig, LocalMirror, MetadataSource, RemoteSparseIndex

FORESTRY_BODY = "".join(json.dumps(e) + "\n" for e in FORESTRY).encode()


def fake_response(status=200, content=b"", json_data=None):
    response = Mock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.content = content
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("no json")
    return response


def remote_with(response, tmp_path=None, cache=False):
    session = Mock(spec=requests.Session)
    if isinstance(response, Exception):
        session.get.side_effect = response
    else:
        session.get.return_value = response
    config = ClientConfig(
        index_url="https://index.example.test",
        cache_dir=tmp_path / "cache" if cache else None,
        timeout=5,
    )
    return MetadataSource.remote(config, session=session), session


# Local mirror

def test_local_fetch(source):
    metadata = source.fetch("forestry")
    assert metadata.name == "forestry"
    assert [v.version for v in metadata.versions] == ["0.1.0", "0.1.1", "0.1.3", "0.2.1"]


def test_local_fetch_is_case_insensitive(source):
    assert source.fetch("Forestry").name == "forestry"


def test_local_not_found_is_none(source):
    assert source.fetch("nonexistent_crate_12345") is None


def test_local_invalid_name(source):
    with pytest.raises(InvalidName):
        source.fetch("not a crate")


def test_local_never_writes_cache(registry, source):
    before = sorted(p for p in registry.rglob("*"))
    source.fetch("forestry", write_cache_entry=True)
    assert sorted(p for p in registry.rglob("*")) == before


def test_local_cached_is_same_as_fetch(source):
    assert [v.version for v in source.cached("colored").versions] == ["1.9.3", "2.0.0", "2.1.0"]


def test_local_requires_index_dir(tmp_path):
    with pytest.raises(StorageError):
        LocalMirror(tmp_path)


def test_local_validate_reports_missing_archives(registry):
    LocalMirror(registry, validate=True)
    (registry / "colored-2.0.0.crate").unlink()
    with pytest.raises(StorageError, match="colored-2.0.0"):
        LocalMirror(registry, validate=True)


def test_local_index_config_points_at_archives(registry):
    config = LocalMirror(registry).index_config()
    url = config.download_url("forestry", "0.2.1")
    assert url.startswith("file://")
    assert url.endswith("/forestry-0.2.1.crate")


def test_local_malformed_index_file(registry, source):
    (registry / "index" / "co" / "lo" / "colored").write_text("{broken\n")
    with pytest.raises(IndexFormatError):
        source.fetch("colored")


# Remote sparse index

def test_remote_fetch(tmp_path):
    source, session = remote_with(fake_response(200, FORESTRY_BODY), tmp_path)
    metadata = source.fetch("forestry")

    assert metadata.name == "forestry"
    assert len(metadata.versions) == 4
    session.get.assert_called_once_with("https://index.example.test/fo/re/forestry", timeout=5)


@pytest.mark.parametrize("status", [404, 410, 451])
def test_remote_not_found(tmp_path, status):
    source, _ = remote_with(fake_response(status), tmp_path)
    assert source.fetch("forestry") is None


def test_remote_empty_body_is_not_found(tmp_path):
    source, _ = remote_with(fake_response(200, b""), tmp_path)
    assert source.fetch("forestry") is None


def test_remote_server_error(tmp_path):
    source, _ = remote_with(fake_response(500), tmp_path)
    with pytest.raises(IndexTransportError, match="HTTP 500"):
        source.fetch("forestry")


def test_remote_network_error(tmp_path):
    source, _ = remote_with(requests.exceptions.ConnectionError("unreachable"), tmp_path)
    with pytest.raises(IndexTransportError, match="unreachable"):
        source.fetch("forestry")


def test_remote_malformed_body(tmp_path):
    source, _ = remote_with(fake_response(200, b"<html>oops</html>\n"), tmp_path)
    with pytest.raises(IndexFormatError):
        source.fetch("forestry")


def test_remote_writes_and_reads_cache(tmp_path):
    source, _ = remote_with(fake_response(200, FORESTRY_BODY), tmp_path, cache=True)
    assert source.cached("forestry") is None

    source.fetch("forestry")
    cache_file = tmp_path / "cache" / "fo" / "re" / "forestry"
    assert cache_file.read_bytes() == FORESTRY_BODY
    assert [v.version for v in source.cached("forestry").versions] == ["0.1.0", "0.1.1", "0.1.3", "0.2.1"]

    # A second identical write just replaces the entry.
    source.fetch("forestry")
    assert cache_file.read_bytes() == FORESTRY_BODY
    assert [p.name for p in cache_file.parent.iterdir()] == ["forestry"]


def test_remote_skips_cache_when_asked(tmp_path):
    source, _ = remote_with(fake_response(200, FORESTRY_BODY), tmp_path, cache=True)
    source.fetch("forestry", write_cache_entry=False)
    assert not (tmp_path / "cache" / "fo" / "re" / "forestry").exists()


def test_remote_index_config(tmp_path):
    source, session = remote_with(
        fake_response(200, json_data={"dl": "https://static.example.test/crates", "api": "https://example.test"}),
        tmp_path,
    )
    config = source.index_config()
    assert config.dl == "https://static.example.test/crates"
    # fetched once, then remembered
    source.index_config()
    assert session.get.call_count == 1


def test_remote_index_config_without_dl(tmp_path):
    source, _ = remote_with(fake_response(200, json_data={"api": "x"}), tmp_path)
    with pytest.raises(IndexFormatError):
        source.index_config()


def test_remote_and_local_agree(tmp_path, source):
    remote, _ = remote_with(fake_response(200, FORESTRY_BODY), tmp_path)
    remote_versions = [(v.version, v.yanked, v.checksum) for v in remote.fetch("forestry").versions]
    local_versions = [(v.version, v.yanked, v.checksum) for v in source.fetch("forestry").versions]
    assert remote_versions == local_versions


# Download URL templates

def test_download_url_without_markers():
    config = IndexConfig("https://static.crates.io/crates")
    assert config.download_url("forestry", "0.2.1") == "https://static.crates.io/crates/forestry/0.2.1/download"


def test_download_url_with_markers():
    config = IndexConfig("https://dl.example.test/{prefix}/{crate}/{crate}-{version}.crate?sum={sha256-checksum}")
    assert config.download_url("forestry", "0.2.1", "abc") == (
        "https://dl.example.test/fo/re/forestry/forestry-0.2.1.crate?sum=abc"
    )


def test_source_kind_must_match_backend(registry):
    with pytest.raises(TypeError):
        MetadataSource(MetadataSource.REMOTE, LocalMirror(registry))

import hashlib
import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from cratescope.index import MetadataSource
from cratescope.models import PackageMetadata, VersionRecord, index_path


def archive_bytes(name: str, version: str) -> bytes:
    return (f"{name}-{version} fake crate archive\n" * 8).encode()


def entry(name: str, version: str, deps: Optional[List[Dict]] = None, yanked: bool = False,
          rust_version: Optional[str] = None) -> Dict:
    data = {
        "name": name,
        "vers": version,
        "deps": [
            {
                "name": d["name"],
                "req": d["req"],
                "features": [],
                "optional": False,
                "default_features": True,
                "target": None,
                "kind": d.get("kind", "normal"),
                **({"package": d["package"]} if "package" in d else {}),
            }
            for d in deps or []
        ],
        "cksum": hashlib.sha256(archive_bytes(name, version)).hexdigest(),
        "features": {},
        "yanked": yanked,
        "v": 2,
    }
    if rust_version is not None:
        data["rust_version"] = rust_version
    return data


def metadata_from(entries: List[Dict]) -> PackageMetadata:
    return PackageMetadata(entries[0]["name"], [VersionRecord.from_dict(e) for e in entries])


def write_registry(root: Path, crates: Dict[str, List[Dict]]) -> Path:
    """Lay out a local registry by hand, without going through cratescope."""
    (root / "index").mkdir(parents=True, exist_ok=True)
    for name, entries in crates.items():
        path = root / "index" / index_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(json.dumps(e) + "\n" for e in entries))
        for e in entries:
            (root / f"{name}-{e['vers']}.crate").write_bytes(archive_bytes(name, e["vers"]))
    return root


FORESTRY = [
    entry("forestry", "0.1.0"),
    entry("forestry", "0.1.1"),
    entry("forestry", "0.1.3", yanked=True),
    entry("forestry", "0.2.1", deps=[{"name": "colored", "req": "^2"}], rust_version="1.70"),
]

COLORED = [
    entry("colored", "1.9.3"),
    entry("colored", "2.0.0"),
    entry("colored", "2.1.0"),
]

SERDE = [
    entry("serde", "1.0.100", rust_version="1.31"),
    entry("serde", "1.0.180", rust_version="1.56"),
    entry("serde", "2.0.0-alpha.1", rust_version="1.80"),
]

ANYHOW = [
    entry("anyhow", "1.0.0", rust_version="1.9"),
    entry("anyhow", "1.0.70", rust_version="1.39"),
]

OLDTIME = [
    entry("oldtime", "0.3.0", rust_version="1.10"),
]

APP = [
    entry("app", "0.1.0", deps=[{"name": "serde", "req": "^1"}]),
    entry(
        "app",
        "0.2.0",
        deps=[
            {"name": "anyhow", "req": "^1.0"},
            {"name": "serde", "req": "^1.0.150"},
            {"name": "colored", "req": "^2"},
            {"name": "ghost", "req": "^1"},
        ],
    ),
]

CRATES = {
    "forestry": FORESTRY,
    "colored": COLORED,
    "serde": SERDE,
    "anyhow": ANYHOW,
    "oldtime": OLDTIME,
    "app": APP,
}


@pytest.fixture
def registry(tmp_path) -> Path:
    return write_registry(tmp_path / "registry", CRATES)


@pytest.fixture
def source(registry) -> MetadataSource:
    return MetadataSource.local(registry)


@pytest.fixture
def forestry() -> PackageMetadata:
    return metadata_from(FORESTRY)

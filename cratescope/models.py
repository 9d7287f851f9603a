import json
import re
from typing import Any, Dict, List, NamedTuple, Optional

from semantic_version import Version

from .errors import IndexFormatError, InvalidName, InvalidVersion
from .versioning import parse_version

##############################################################################
# Crate names
##############################################################################

MAX_NAME_LENGTH = 64

# Device names Windows refuses as file names; crates.io rejects them so the
# index can be checked out everywhere.
RESERVED_NAMES = frozenset(
    ["nul", "con", "prn", "aux"]
    + [f"com{i}" for i in range(1, 10)]
    + [f"lpt{i}" for i in range(1, 10)]
)

_NAME_CHARS = re.compile(r"^[A-Za-z0-9_-]+$")


class PackageName:
    """
    A crate name that follows the crates.io rules:
     - between 1 and 64 characters,
     - starts with an ASCII letter,
     - only ASCII letters, digits, '-' and '_',
     - not a reserved Windows device name.

    Names compare case-insensitively, the same way crates.io refuses to
    publish "Serde" next to "serde". The original spelling is kept for display.
    """
    __slots__ = ("name",)

    def __init__(self, name: str):
        if not isinstance(name, str) or not name:
            raise InvalidName("Crate name must be a non-empty string")
        if len(name) > MAX_NAME_LENGTH:
            raise InvalidName(
                f"Crate name {name!r} is {len(name)} characters long; "
                f"the limit is {MAX_NAME_LENGTH}"
            )
        if not ("a" <= name[0].lower() <= "z"):
            raise InvalidName(f"Crate name {name!r} must start with an ASCII letter")
        if not _NAME_CHARS.match(name):
            raise InvalidName(
                f"Crate name {name!r} may only contain ASCII letters, digits, '-' and '_'"
            )
        if name.lower() in RESERVED_NAMES:
            raise InvalidName(f"Crate name {name!r} is reserved")
        self.name = name

    @property
    def normalized(self) -> str:
        return self.name.lower()

    def index_path(self) -> str:
        return index_path(self.name)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"PackageName({self.name!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PackageName):
            return self.normalized == other.normalized
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.normalized)


def index_prefix(name: str) -> str:
    """
    Directory part of a crate's index path:

        "a"        -> "1"
        "ab"       -> "2"
        "abc"      -> "3/a"
        "forestry" -> "fo/re"
    """
    name = name.lower()
    if len(name) == 1:
        return "1"
    if len(name) == 2:
        return "2"
    if len(name) == 3:
        return f"3/{name[0]}"
    return f"{name[:2]}/{name[2:4]}"


def index_path(name: str) -> str:
    return f"{index_prefix(name)}/{name.lower()}"


def to_package_name(name) -> PackageName:
    if isinstance(name, PackageName):
        return name
    return PackageName(name)


##############################################################################
# Index entries
##############################################################################

class DependencySpec(NamedTuple):
    """
    One entry of a version's "deps" array.

    `name` is the name the dependent crate uses for it; when the dependency is
    renamed in Cargo.toml, `package` holds the real crate name.
    """
    name: str
    req: str
    kind: str = "normal"
    optional: bool = False
    target: Optional[str] = None
    package: Optional[str] = None

    @property
    def crate_name(self) -> str:
        return self.package or self.name

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DependencySpec":
        try:
            return cls(
                name=data["name"],
                req=data["req"],
                kind=data.get("kind") or "normal",
                optional=bool(data.get("optional", False)),
                target=data.get("target"),
                package=data.get("package"),
            )
        except (KeyError, TypeError) as e:
            raise IndexFormatError(f"Malformed dependency entry {data!r}: missing {e}")


class VersionRecord:
    """
    Represents ONE published version of a crate, i.e. one line of an index file.

    We store:
     - name: crate name as published
     - version: version string ("vers")
     - semver: the parsed version, used for ordering and requirement matching
     - yanked: may flip to True after publication; the record is never removed
     - rust_version: declared minimum toolchain, or None
     - dependencies: list of DependencySpec, in index order
     - checksum: sha256 of the .crate archive ("cksum")

    The whole JSON object is kept in `_raw` so that a mirror can write the
    line back with every field the index sent, including the ones we do not
    interpret (features, links, schema version...).
    """
    __slots__ = (
        "name", "version", "semver", "yanked", "rust_version",
        "dependencies", "checksum", "_raw",
    )

    def __init__(
        self,
        name: str,
        version: str,
        yanked: bool = False,
        rust_version: Optional[str] = None,
        dependencies: Optional[List[DependencySpec]] = None,
        checksum: str = "",
        raw: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.version = version
        self.semver: Version = parse_version(version)
        self.yanked = yanked
        self.rust_version = rust_version
        self.dependencies = list(dependencies or [])
        self.checksum = checksum
        self._raw = dict(raw or {})

    @property
    def is_prerelease(self) -> bool:
        return bool(self.semver.prerelease)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionRecord":
        if not isinstance(data, dict):
            raise IndexFormatError(f"Index entry is not a JSON object: {data!r}")
        try:
            name = data["name"]
            version = data["vers"]
        except KeyError as e:
            raise IndexFormatError(f"Index entry is missing required field {e}")

        deps = [DependencySpec.from_dict(d) for d in data.get("deps") or []]
        try:
            return cls(
                name=name,
                version=version,
                yanked=bool(data.get("yanked", False)),
                rust_version=data.get("rust_version"),
                dependencies=deps,
                checksum=data.get("cksum", ""),
                raw=data,
            )
        except InvalidVersion as e:
            raise IndexFormatError(f"Index entry for {name!r} has a bad version: {e}")

    @classmethod
    def from_index_line(cls, line: str) -> "VersionRecord":
        try:
            data = json.loads(line)
        except ValueError as e:
            raise IndexFormatError(f"Index line is not valid JSON: {e}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self._raw)
        data.update({
            "name": self.name,
            "vers": self.version,
            "cksum": self.checksum,
            "yanked": self.yanked,
        })
        if "deps" not in data:
            data["deps"] = [_dependency_to_dict(dep) for dep in self.dependencies]
        if self.rust_version is not None:
            data["rust_version"] = self.rust_version
        return data

    def __repr__(self) -> str:
        flag = " yanked" if self.yanked else ""
        return f"<VersionRecord {self.name} {self.version}{flag}>"


def _dependency_to_dict(dep: DependencySpec) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": dep.name,
        "req": dep.req,
        "features": [],
        "optional": dep.optional,
        "default_features": True,
        "target": dep.target,
        "kind": dep.kind,
    }
    if dep.package:
        data["package"] = dep.package
    return data


class PackageMetadata:
    """
    A crate and every version the index lists for it, in publish order.

    The order of `versions` is meaningful: it is the order the index file
    lists them in, which is publish chronology, NOT semver order.
    """
    __slots__ = ("name", "versions")

    def __init__(self, name: str, versions: List[VersionRecord]):
        if not versions:
            raise ValueError(f"Crate {name!r} has no versions")
        self.name = name
        self.versions = list(versions)

    @classmethod
    def from_index_bytes(cls, data: bytes) -> Optional["PackageMetadata"]:
        """
        Parse the body of an index file (one JSON object per line).

        Returns None for a body with no version lines: a crate without any
        version is the same as a crate that does not exist.
        """
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise IndexFormatError(f"Index file is not valid UTF-8: {e}")

        versions = [
            VersionRecord.from_index_line(line)
            for line in text.splitlines()
            if line.strip()
        ]
        if not versions:
            return None
        return cls(versions[0].name, versions)

    def to_index_bytes(self) -> bytes:
        lines = [
            json.dumps(v.to_dict(), separators=(",", ":")) for v in self.versions
        ]
        return ("\n".join(lines) + "\n").encode("utf-8")

    def __repr__(self) -> str:
        return f"<PackageMetadata {self.name} ({len(self.versions)} versions)>"

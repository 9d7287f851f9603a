"""
Semantic version helpers.

Crate versions are strict semver ("1.2.3", "0.4.0-alpha.1"). Dependency
requirements use cargo syntax, whose shorthands do not mean what
semantic_version's SimpleSpec makes of them:

 - a bare version ("1.2") means caret ("^1.2"), not equality,
 - "^0" is ">=0.0.0, <1.0.0" and "^0.0" is ">=0.0.0, <0.1.0",
 - ">1.2" skips the whole 1.2 series, "<=1.2" includes it,
 - whitespace is allowed between the operator and the version (">= 1.0").

So every cargo comparator is expanded into explicit full-version bounds here,
and SimpleSpec only checks those bounds.

Pre-releases are opt-in in cargo: a pre-release version only matches when
some comparator names a pre-release of the same major.minor.patch. "^2"
never matches "2.1.0-alpha.1"; "^2.1.0-alpha.1" matches "2.1.0-alpha.2" but
not "2.2.0-alpha.1". CargoRequirement applies that rule on top of the spec.

Toolchain versions ("rust_version") are often written with two components
("1.56"), so they are coerced into full versions before comparing. They must
never be compared as strings: "1.9" < "1.10".
"""
import re
from typing import FrozenSet, List, Optional, Tuple

from semantic_version import SimpleSpec, Version

from .errors import InvalidRequirement, InvalidVersion

_CLAUSE = re.compile(
    r"^(?P<op><=|>=|<|>|=|\^|~)?\s*"
    r"(?P<major>\d+|[*xX])(?:\.(?P<minor>\d+|[*xX])(?:\.(?P<patch>\d+|[*xX]))?)?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)
_WILDCARDS = ("*", "x", "X")

Triple = Tuple[int, int, int]


def parse_version(text: str) -> Version:
    try:
        return Version(text)
    except ValueError as e:
        raise InvalidVersion(f"Invalid semantic version {text!r}: {e}")


def parse_toolchain_version(text: str) -> Version:
    """Parse a declared toolchain version, accepting "major.minor" forms."""
    try:
        return Version.coerce(text.strip())
    except ValueError as e:
        raise InvalidVersion(f"Invalid toolchain version {text!r}: {e}")


class CargoRequirement:
    """
    A parsed cargo requirement.

     - text: the requirement as written in the index
     - spec: the SimpleSpec holding the expanded bounds
     - prerelease_bases: major.minor.patch of every comparator that names a
       pre-release; only pre-releases on one of these can match
    """
    __slots__ = ("text", "spec", "prerelease_bases")

    def __init__(self, text: str, spec: SimpleSpec, prerelease_bases: FrozenSet[Triple]):
        self.text = text
        self.spec = spec
        self.prerelease_bases = prerelease_bases

    def match(self, version: Version) -> bool:
        if version.prerelease and (version.major, version.minor, version.patch) not in self.prerelease_bases:
            return False
        return self.spec.match(version)

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"CargoRequirement({self.text!r} -> {self.spec})"


def _fail(requirement: str, reason: str) -> InvalidRequirement:
    return InvalidRequirement(f"Cannot parse version requirement {requirement!r}: {reason}")


def _numbers(clause: str, requirement: str, m) -> Tuple[List[int], bool]:
    """The numeric components before the first missing or wildcard one."""
    numbers: List[int] = []
    wildcard = False
    for key in ("major", "minor", "patch"):
        value = m.group(key)
        if value is None:
            break
        if value in _WILDCARDS:
            wildcard = True
            continue
        if wildcard:
            raise _fail(requirement, f"a number cannot follow a wildcard in {clause!r}")
        numbers.append(int(value))
    return numbers, wildcard


def _full(major: int, minor: int = 0, patch: int = 0, pre: Optional[str] = None) -> str:
    text = f"{major}.{minor}.{patch}"
    if pre:
        text += f"-{pre}"
    return text


def _expand_clause(clause: str, requirement: str) -> Tuple[List[str], Optional[Triple]]:
    """
    Expand one cargo comparator into SimpleSpec bounds. Also returns the
    major.minor.patch it names when it carries a pre-release.
    """
    clause = clause.strip()
    m = _CLAUSE.match(clause)
    if not m:
        raise _fail(requirement, f"unexpected comparator {clause!r}")

    op = m.group("op") or ""
    pre = m.group("pre")
    numbers, wildcard = _numbers(clause, requirement, m)

    if wildcard:
        if op not in ("", "="):
            raise _fail(requirement, f"operator {op!r} cannot be combined with a wildcard")
        op = "="
    if pre and len(numbers) < 3:
        raise _fail(requirement, f"a pre-release needs a full version in {clause!r}")
    if not op:
        op = "^"

    n = len(numbers)
    major = numbers[0] if n > 0 else 0
    minor = numbers[1] if n > 1 else 0
    patch = numbers[2] if n > 2 else 0
    exact = _full(major, minor, patch, pre)

    if op == "=":
        if n == 0:
            bounds = [">=0.0.0"]
        elif n == 1:
            bounds = [f">={exact}", f"<{_full(major + 1)}"]
        elif n == 2:
            bounds = [f">={exact}", f"<{_full(major, minor + 1)}"]
        else:
            bounds = [f"=={exact}"]
    elif op == ">":
        if n == 1:
            bounds = [f">={_full(major + 1)}"]
        elif n == 2:
            bounds = [f">={_full(major, minor + 1)}"]
        else:
            bounds = [f">{exact}"]
    elif op == ">=":
        bounds = [f">={exact}"]
    elif op == "<":
        bounds = [f"<{exact}"]
    elif op == "<=":
        if n == 1:
            bounds = [f"<{_full(major + 1)}"]
        elif n == 2:
            bounds = [f"<{_full(major, minor + 1)}"]
        else:
            bounds = [f"<={exact}"]
    elif op == "~":
        if n == 1:
            bounds = [f">={exact}", f"<{_full(major + 1)}"]
        else:
            bounds = [f">={exact}", f"<{_full(major, minor + 1)}"]
    else:
        # caret: the leftmost non-zero component given must not change
        if n == 1 or major > 0:
            upper = _full(major + 1)
        elif n == 2 or minor > 0:
            upper = _full(0, minor + 1)
        else:
            upper = _full(0, 0, patch + 1)
        bounds = [f">={exact}", f"<{upper}"]

    base = (major, minor, patch) if pre else None
    return bounds, base


def parse_requirement(requirement: str) -> CargoRequirement:
    """Parse a cargo version requirement such as "^1.2", ">= 0.3, < 0.5" or "*"."""
    if not requirement or not requirement.strip():
        raise InvalidRequirement("Empty version requirement")

    bounds: List[str] = []
    bases = set()
    for clause in requirement.split(","):
        clause_bounds, base = _expand_clause(clause, requirement)
        bounds.extend(clause_bounds)
        if base is not None:
            bases.add(base)

    try:
        spec = SimpleSpec(",".join(bounds))
    except ValueError as e:
        raise _fail(requirement, str(e))
    return CargoRequirement(requirement, spec, frozenset(bases))


def requirement_matches(requirement: CargoRequirement, version: Version) -> bool:
    return requirement.match(version)

import pytest

from cratescope.errors import InvalidRequirement, InvalidVersion
from cratescope.versioning import parse_requirement, parse_toolchain_version, parse_version


@pytest.mark.parametrize(
    "requirement, version, expected",
    [
        ("^2", "2.1.0", True),
        ("^2", "1.9.3", False),
        ("2", "2.0.0", True),
        ("1.2", "1.9.0", True),
        ("0.3", "0.4.0", False),
        ("^0.3.1", "0.3.9", True),
        ("~1.2", "1.3.0", False),
        ("=1.0.5", "1.0.5", True),
        ("=1.0.5", "1.0.6", False),
        (">= 1.0, < 2.0", "1.5.0", True),
        (">= 1.0, < 2.0", "2.0.0", False),
        ("*", "0.0.1", True),
        ("^0", "0.9.0", True),
        ("0", "0.5.0", True),
        ("^0", "1.0.0", False),
        ("^0.0", "0.0.7", True),
        ("^0.0", "0.1.0", False),
        ("^0.0.3", "0.0.3", True),
        ("^0.0.3", "0.0.4", False),
        (">1.2", "1.2.9", False),
        (">1.2", "1.3.0", True),
        ("<=1.2", "1.2.9", True),
        ("<=1.2", "1.3.0", False),
        ("=1.2", "1.2.5", True),
        ("1.*", "1.7.0", True),
        ("1.*", "2.0.0", False),
        ("1.2.*", "1.3.0", False),
    ],
)
def test_cargo_requirements(requirement, version, expected):
    assert parse_requirement(requirement).match(parse_version(version)) is expected


@pytest.mark.parametrize("requirement", ["", "   ", "latest", ">> 1.0", "^*"])
def test_invalid_requirements(requirement):
    with pytest.raises(InvalidRequirement):
        parse_requirement(requirement)


def test_invalid_version():
    with pytest.raises(InvalidVersion):
        parse_version("1.0")


def test_toolchain_versions_compare_numerically():
    assert parse_toolchain_version("1.9") < parse_toolchain_version("1.10")
    assert parse_toolchain_version("1.56") == parse_toolchain_version("1.56.0")
    assert parse_toolchain_version("1.70.1") > parse_toolchain_version("1.70")


@pytest.mark.parametrize(
    "requirement, version",
    [
        ("^2", "2.1.0-alpha.1"),
        ("*", "0.1.0-alpha"),
        (">=0.2, <0.4", "0.3.0-beta"),
        ("^1.0.0", "2.0.0-rc.1"),
        ("^2.1.0-alpha.1", "2.2.0-alpha.1"),
        ("1.*", "1.5.0-pre"),
    ],
)
def test_pre_releases_are_not_matched_by_default(requirement, version):
    assert parse_requirement(requirement).match(parse_version(version)) is False


@pytest.mark.parametrize(
    "requirement, version",
    [
        ("^2.1.0-alpha.1", "2.1.0-alpha.1"),
        ("^2.1.0-alpha.1", "2.1.0-beta"),
        ("^2.1.0-alpha.1", "2.1.0"),
        ("^2.1.0-alpha.1", "2.3.0"),
        ("=1.0.0-rc.2", "1.0.0-rc.2"),
        (">=0.3.0-beta, <0.4", "0.3.0-beta.2"),
    ],
)
def test_pre_releases_named_by_the_requirement(requirement, version):
    assert parse_requirement(requirement).match(parse_version(version)) is True


@pytest.mark.parametrize("requirement", [">=1.*", "1.*.3", "^1.2-beta"])
def test_malformed_wildcards_and_pre_releases(requirement):
    with pytest.raises(InvalidRequirement):
        parse_requirement(requirement)

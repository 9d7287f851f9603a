"""
Exception types raised by cratescope.

Everything derives from CrateScopeError (itself a RuntimeError), so a caller
that only wants "did it work" can catch one type, while the CLI and the tests
can tell the failure kinds apart.
"""


class CrateScopeError(RuntimeError):
    """Base class for every error raised by this package."""


class CrateNotFoundOnIndex(CrateScopeError):
    """The crate does not exist on the index we asked."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"The crate {name!r} was not found on the index")


class InvalidInput(CrateScopeError, ValueError):
    """Malformed user or index input."""


class InvalidName(InvalidInput):
    pass


class InvalidVersion(InvalidInput):
    pass


class InvalidRequirement(InvalidInput):
    pass


class IndexTransportError(CrateScopeError):
    """Network or protocol failure talking to the remote index."""


class IndexFormatError(IndexTransportError):
    """The index answered, but with something we cannot parse."""


class StorageError(CrateScopeError):
    """Disk failure reading or writing a local mirror or cache."""


class ArchiveError(CrateScopeError):
    """A crate archive could not be fetched."""


class IntegrityError(ArchiveError):
    """A crate archive does not match the checksum declared by the index."""


class StateError(CrateScopeError):
    """A mirror builder operation was called out of sequence."""


class NotInitialized(StateError):
    pass


class AlreadyExists(CrateScopeError):
    """The mirror location is already in use and replacing it was not allowed."""

"""Exception hierarchy for linkcache.

Library code raises these; the CLI catches LinkcacheError at command
boundaries and reports it.
"""


class LinkcacheError(Exception):
    """Base class for every error raised by linkcache."""


class StorageError(LinkcacheError):
    """The store file could not be opened, read or written."""


class MigrationError(StorageError):
    """A schema migration step failed. The store must not be used."""

    def __init__(self, message: str, version: int | None = None):
        super().__init__(message)
        self.version = version


class InvalidLinkError(LinkcacheError, ValueError):
    """A link record failed validation (e.g. empty url)."""


class ExtractionError(LinkcacheError):
    """A browser profile could not be read.

    Non-fatal for a scan: the source is skipped and the others continue.
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source

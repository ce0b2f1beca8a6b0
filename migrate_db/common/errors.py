"""
Error types raised while migrating legacy identities.
"""
from typing import Optional


class MigrationError(Exception):
    """Base class for all migration errors."""


class ConversionError(MigrationError):
    """A single legacy document could not be converted. The record is skipped."""


class UnrecognizedExternalID(ConversionError):
    def __init__(self, external_id: str):
        self.external_id = external_id
        super().__init__(f"unrecognised external ID {external_id!r}")


class UnrecognizedOwner(ConversionError):
    def __init__(self, username: str, owner: str):
        self.username = username
        self.owner = owner
        super().__init__(f"unrecognised owner for {username} ({owner!r})")


class MalformedDocument(ConversionError):
    def __init__(self, reason: str, username: Optional[str] = None):
        self.reason = reason
        self.username = username
        if username:
            super().__init__(f"malformed legacy document for {username}: {reason}")
        else:
            super().__init__(f"malformed legacy document: {reason}")


class CursorError(MigrationError):
    """
    The legacy cursor failed. Terminal to the iteration; the driver's
    exception is kept on __cause__.
    """

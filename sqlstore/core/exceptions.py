"""Exception hierarchy for the session store."""


class SessionStoreError(Exception):
    """Base class for every error raised by sqlstore."""


class CodecError(SessionStoreError):
    """Authentication, encryption, serialization or length-limit failure."""


class EncodeError(CodecError):
    """A value could not be turned into a token."""


class DecodeError(CodecError):
    """A token could not be verified or turned back into a value.

    When several codecs were tried, ``errors`` holds the failure of each one
    in the order they were attempted.
    """

    def __init__(self, message: str, errors: list["CodecError"] | None = None):
        super().__init__(message)
        self.errors = errors or []


class StoreError(SessionStoreError):
    """The backing database failed to execute an operation."""


class SweepError(SessionStoreError):
    """A pass of the expired-session sweeper failed."""

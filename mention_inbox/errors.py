"""Exceptions raised on API misuse."""


class MentionInboxError(Exception):
    """Base class for mention inbox errors."""


class AuthenticationRequired(MentionInboxError):
    """A loader source was requested without a current user."""

    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


class InvalidLoaderQuery(MentionInboxError):
    """A loader source was asked for a kind of entity it does not serve."""

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"query not valid for this context: {kind!r}")

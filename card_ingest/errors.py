"""Exception types raised by the ingestion pipelines."""

from typing import Optional


class CardIngestError(Exception):
    """Base class for all card ingestion errors."""


class ValidationError(CardIngestError):
    """A bulk add request was rejected before any remote call was made."""


class TagCreationError(CardIngestError):
    """The review tag could not be looked up or created."""


class RemoteCallError(CardIngestError):
    """A collaborator answered a call with an error reply.

    ``status`` carries the remote HTTP-like status code when the collaborator
    reports one; the retry classifier uses it to tell transient failures from
    permanent ones.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

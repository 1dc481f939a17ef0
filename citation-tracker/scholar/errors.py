"""
Error taxonomy for fetching and parsing citation metrics.

Fetch and extraction errors are caught per profile by the refresh
orchestrator; only NoDataAvailable ever reaches a cycle listener.
"""

from typing import Optional


class CitationError(Exception):
    """Base class for every tracker failure. Carries a user-facing message."""

    default_message = "Citation tracking failed"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message if not detail else f"{self.message}: {detail}")


class InvalidURL(CitationError):
    default_message = "Invalid Google Scholar URL"


class NetworkError(CitationError):
    """Connection failure, timeout, non-200 status or a blocked page."""
    default_message = "Network request failed"


class InvalidResponse(CitationError):
    default_message = "Invalid response from Google Scholar"


class CitationCountNotFound(CitationError):
    default_message = "Could not find citation count on page"


class ParsingError(CitationError):
    default_message = "Failed to parse HTML content"


class NoDataAvailable(CitationError):
    default_message = "No citation data available"

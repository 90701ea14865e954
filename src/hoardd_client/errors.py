"""Exceptions raised by the backend client and the export pipeline."""


class HoarddError(Exception):
    """Base error for the client."""


class BackendError(HoarddError):
    """Raised when connecting, health checking, or counting against the backend fails."""


class ExportError(HoarddError):
    """Base error for failures that abort an export run."""

    kind = "export"


class FetchError(ExportError):
    """A page could not be retrieved from the scroll."""

    kind = "fetch"


class ParseError(ExportError):
    """A record did not decode into the identifier/secret shape."""

    kind = "parse"


class WriteError(ExportError):
    """An output stream failed."""

    kind = "write"

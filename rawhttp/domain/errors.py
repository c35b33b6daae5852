"""Failure taxonomy shared by both services.

Every error a connection can hit while being served maps to exactly one
HTTP status. The worker catches ``HttpError`` at the connection boundary
and turns it into an error response; the underlying cause is kept on the
exception chain for logging and never reaches the client.
"""

from http import HTTPStatus


class HttpError(Exception):
    """Base class for failures that are answered with an HTTP error status."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR


class MalformedRequestLine(HttpError):
    """Request line does not split into method, target and version."""

    status = HTTPStatus.BAD_REQUEST


class MalformedHeader(HttpError):
    """Header line lacks the colon separating name and value."""

    status = HTTPStatus.BAD_REQUEST


class UnexpectedEOF(HttpError):
    """Stream ended before the request head was complete."""

    status = HTTPStatus.BAD_REQUEST


class LineTooLong(HttpError):
    """A request line or header line exceeded the configured bound."""

    status = HTTPStatus.BAD_REQUEST


class UnsupportedExtension(HttpError):
    """Requested file extension is not in the MIME allow-list."""

    status = HTTPStatus.BAD_REQUEST


class PathTraversalRejected(HttpError):
    """Request path resolves outside of the configured root."""

    status = HTTPStatus.FORBIDDEN


class ResourceNotFound(HttpError):
    """Requested file does not exist or cannot be opened."""

    status = HTTPStatus.NOT_FOUND


class MissingOrInvalidContentLength(HttpError):
    """Upload without a usable Content-Length header."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR


class FilesystemFailure(HttpError):
    """Directory creation or file creation failed."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR


class IOFailure(HttpError):
    """Copying bytes between the connection and a file failed."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR


class UpstreamFailure(HttpError):
    """Origin server could not be reached or answered with garbage."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR


class UnsupportedMethod(HttpError):
    """Method is not served by this endpoint."""

    status = HTTPStatus.NOT_IMPLEMENTED


class ClientDisconnected(Exception):
    """Peer closed the connection before sending a single byte."""

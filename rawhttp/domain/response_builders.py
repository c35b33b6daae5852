"""Pure HTTP response builders.

Responses are byte-exact: no header is added beyond what each builder
lists, since the connection is always closed after one response.
"""

from http import HTTPStatus
from typing import Callable, Iterable, Optional

from rawhttp.domain.http_types import HttpResponse

HTTP_VERSION = "HTTP/1.1"
UPLOAD_SUCCESS_MESSAGE = "File uploaded successfully"


def status_line(status: HTTPStatus, version: str = HTTP_VERSION) -> str:
    """Format a status line such as ``HTTP/1.1 404 Not Found``."""
    return f"{version} {status.value} {status.phrase}"


def error_response(status: HTTPStatus) -> HttpResponse:
    """Return ``<line>\\r\\n\\r\\n<reason>\\r\\n`` for an error status."""
    return HttpResponse(
        status_line(status),
        [],
        f"{status.phrase}\r\n".encode(),
    )


def message_response(message: str) -> HttpResponse:
    """Return a header-less 200 response carrying a short message line."""
    return HttpResponse(status_line(HTTPStatus.OK), [], f"{message}\r\n".encode())


def upload_success_response() -> HttpResponse:
    """Return the 200 response written after a completed upload."""
    return message_response(UPLOAD_SUCCESS_MESSAGE)


def file_response(
    content_type: str,
    body_iter: Iterable[bytes],
    closer: Optional[Callable[[], None]] = None,
) -> HttpResponse:
    """Return a 200 response streaming a file with its Content-Type."""
    return HttpResponse(
        status_line(HTTPStatus.OK),
        [("Content-Type", content_type)],
        b"",
        body_iter=body_iter,
        closers=[closer] if closer is not None else [],
    )


def relay_response(
    line: str,
    headers: list[tuple[str, str]],
    body_iter: Iterable[bytes],
    closer: Optional[Callable[[], None]] = None,
) -> HttpResponse:
    """Return a response that relays an upstream status, headers and body."""
    return HttpResponse(
        line,
        headers,
        b"",
        body_iter=body_iter,
        closers=[closer] if closer is not None else [],
    )

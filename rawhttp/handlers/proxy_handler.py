"""Upstream forwarder: relays GET requests to the origin named in the target."""

import logging
from http import HTTPStatus
from typing import BinaryIO, Iterator, Optional

import requests
import urllib3
from requests.structures import CaseInsensitiveDict
from urllib3.util import SKIP_HEADER

from rawhttp.bootstrap.config import COPY_CHUNK_BYTES
from rawhttp.domain.correlation_id import CorrelationLoggerAdapter
from rawhttp.domain.errors import IOFailure, UpstreamFailure
from rawhttp.domain.http_types import HttpRequest, HttpResponse
from rawhttp.domain.response_builders import relay_response

PROXY_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("rawhttp.handlers.proxy"), {}
)

PROTOCOL_VERSIONS = {10: "HTTP/1.0", 11: "HTTP/1.1"}

# The relayed body is de-chunked and delimited by closing the connection.
SKIPPED_RESPONSE_HEADERS = frozenset({"transfer-encoding"})

# The request body is never forwarded, so its framing headers are not either.
SKIPPED_REQUEST_HEADERS = frozenset({"content-length", "transfer-encoding"})

# Headers urllib3 would otherwise fill in on its own.
SUPPRESSED_DEFAULT_HEADERS = ("User-Agent", "Accept-Encoding")


def outbound_headers(header_lines: list[tuple[str, str]]) -> CaseInsensitiveDict:
    """Copy inbound header lines, joining repeated names with a comma.

    Body framing headers are left out. Client defaults the inbound request
    did not carry are marked with ``SKIP_HEADER`` so the origin only sees
    what the client sent, plus ``Host`` when the client omitted it.
    """
    headers: CaseInsensitiveDict = CaseInsensitiveDict()
    for name, value in header_lines:
        if name.lower() in SKIPPED_REQUEST_HEADERS:
            continue
        if name in headers:
            headers[name] = f"{headers[name]}, {value}"
        else:
            headers[name] = value
    for name in SUPPRESSED_DEFAULT_HEADERS:
        headers.setdefault(name, SKIP_HEADER)
    return headers


def upstream_status_line(upstream: requests.Response) -> str:
    """Rebuild the origin status line from the parsed response."""
    protocol = PROTOCOL_VERSIONS.get(upstream.raw.version, "HTTP/1.1")
    reason = upstream.reason
    if not reason:
        try:
            reason = HTTPStatus(upstream.status_code).phrase
        except ValueError:
            reason = ""
    return f"{protocol} {upstream.status_code} {reason}".rstrip()


def upstream_header_lines(upstream: requests.Response) -> list[tuple[str, str]]:
    """Return origin header lines with one entry per value."""
    return [
        (name, value)
        for name, value in upstream.raw.headers.iteritems()
        if name.lower() not in SKIPPED_RESPONSE_HEADERS
    ]


def stream_upstream_body(
    upstream: requests.Response, chunk_size: int = COPY_CHUNK_BYTES
) -> Iterator[bytes]:
    """Yield the origin body exactly as sent, without content decoding."""
    try:
        yield from upstream.raw.stream(chunk_size, decode_content=False)
    except (urllib3.exceptions.HTTPError, OSError) as error:
        raise IOFailure("upstream body interrupted") from error


class UpstreamForwarder:
    """Issues the outbound request and exposes the origin response for relay."""

    def __init__(
        self,
        timeout: float,
        session: Optional[requests.Session] = None,
        chunk_size: int = COPY_CHUNK_BYTES,
    ) -> None:
        self._timeout = timeout
        self._chunk_size = chunk_size
        if session is None:
            session = requests.Session()
            # Ignore HTTP_PROXY and friends from the environment.
            session.trust_env = False
        self._session = session

    def forward(self, request: HttpRequest) -> requests.Response:
        """Send the request upstream and return the unread streaming response."""
        try:
            prepared = requests.Request(
                request.method,
                request.target,
                headers=outbound_headers(request.header_lines),
            ).prepare()
            return self._session.send(
                prepared,
                stream=True,
                timeout=self._timeout,
                allow_redirects=False,
            )
        except requests.RequestException as error:
            PROXY_LOGGER.warning(
                "Upstream request failed",
                extra={
                    "event": "upstream_failed",
                    "target": request.target,
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
            )
            raise UpstreamFailure(f"cannot fetch {request.target}") from error

    def relay(self, upstream: requests.Response) -> HttpResponse:
        """Wrap the origin response so it is written back verbatim."""
        return relay_response(
            upstream_status_line(upstream),
            upstream_header_lines(upstream),
            stream_upstream_body(upstream, self._chunk_size),
            upstream.close,
        )

    def get(self, request: HttpRequest, _reader: BinaryIO) -> HttpResponse:
        """Forward a GET request and relay the origin response."""
        upstream = self.forward(request)
        PROXY_LOGGER.info(
            "Upstream response received",
            extra={
                "event": "upstream_response",
                "target": request.target,
                "status_code": upstream.status_code,
            },
        )
        return self.relay(upstream)

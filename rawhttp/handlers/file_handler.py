"""Static resource store: serves and stores whitelisted files under a root."""

import logging
import posixpath
from typing import BinaryIO, Iterator, Mapping

from rawhttp.bootstrap.config import COPY_CHUNK_BYTES
from rawhttp.domain.correlation_id import CorrelationLoggerAdapter
from rawhttp.domain.errors import (
    FilesystemFailure,
    ResourceNotFound,
    UnsupportedExtension,
)
from rawhttp.domain.http_types import HttpRequest, HttpResponse
from rawhttp.domain.response_builders import file_response, upload_success_response
from rawhttp.domain.sandbox import resolve_sandbox_path
from rawhttp.pipeline.io import copy_exact
from rawhttp.pipeline.parser import content_length

FILE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("rawhttp.handlers.file"), {})


def stream_file(file_handle: BinaryIO, chunk_size: int = COPY_CHUNK_BYTES) -> Iterator[bytes]:
    """Yield file contents in fixed-size chunks for streaming responses."""
    while True:
        chunk = file_handle.read(chunk_size)
        if not chunk:
            break
        if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
            FILE_LOGGER.debug(
                "File chunk sent",
                extra={"event": "file_chunk_sent", "bytes": len(chunk)},
            )
        yield chunk


class ResourceStore:
    """Maps request paths to files below ``directory`` restricted by extension."""

    def __init__(
        self,
        directory: str,
        mime_types: Mapping[str, str],
        chunk_size: int = COPY_CHUNK_BYTES,
    ) -> None:
        self._directory = directory
        self._mime_types = mime_types
        self._chunk_size = chunk_size

    def content_type_for(self, path: str) -> str:
        """Return the MIME type for the path's extension or reject it."""
        name = posixpath.basename(path)
        dot = name.rfind(".")
        # A leading dot counts: "/.txt" has the extension ".txt".
        extension = name[dot:].lower() if dot >= 0 else ""
        try:
            return self._mime_types[extension]
        except KeyError:
            raise UnsupportedExtension(f"extension {extension!r} not allowed") from None

    def get(self, request: HttpRequest, _reader: BinaryIO) -> HttpResponse:
        """Stream an existing file back with its Content-Type."""
        content_type = self.content_type_for(request.path)
        resolved_path = resolve_sandbox_path(self._directory, request.path)
        try:
            file_handle = open(resolved_path, "rb")  # pylint: disable=consider-using-with
        except OSError as error:
            FILE_LOGGER.info(
                "File not found",
                extra={
                    "event": "file_not_found",
                    "path": resolved_path.as_posix(),
                    "method": request.method,
                },
            )
            raise ResourceNotFound(str(error)) from error

        FILE_LOGGER.info(
            "File read started",
            extra={
                "event": "file_read_started",
                "path": resolved_path.as_posix(),
                "method": request.method,
            },
        )
        return file_response(
            content_type,
            stream_file(file_handle, self._chunk_size),
            file_handle.close,
        )

    def post(self, request: HttpRequest, reader: BinaryIO) -> HttpResponse:
        """Store exactly Content-Length body bytes at the request path."""
        self.content_type_for(request.path)
        resolved_path = resolve_sandbox_path(self._directory, request.path)
        try:
            resolved_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise FilesystemFailure(f"cannot create {resolved_path.parent}") from error

        length = content_length(request.headers)
        if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
            FILE_LOGGER.debug(
                "File write started",
                extra={
                    "event": "file_write_started",
                    "path": resolved_path.as_posix(),
                    "content_length": length,
                },
            )
        try:
            file_handle = open(resolved_path, "wb")  # pylint: disable=consider-using-with
        except OSError as error:
            raise FilesystemFailure(f"cannot create {resolved_path}") from error
        with file_handle:
            written = copy_exact(reader, file_handle, length, self._chunk_size)

        FILE_LOGGER.info(
            "File write complete",
            extra={
                "event": "file_write_complete",
                "path": resolved_path.as_posix(),
                "method": request.method,
                "bytes_out": written,
            },
        )
        return upload_success_response()

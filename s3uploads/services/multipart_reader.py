"""
Forward-only cursor over a multipart/form-data body.

``python_multipart.MultipartParser`` is push based: it is fed raw body chunks
and reports what it finds through callbacks. The upload client, on the other
hand, pulls bytes with ``read(size)``. ``MultipartReader`` sits in between: it
only feeds the parser another body chunk when the consumer asks for more
bytes than are already decoded, so at most one body chunk is held in memory
at any time.
"""
from collections import deque
from email.message import Message
from email.utils import collapse_rfc2231_value
from typing import Deque, Dict, Iterable, Iterator, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

_HEADERS = "headers"
_DATA = "data"
_END = "end"


def _extended_filename(disposition: str) -> Optional[str]:
    """Decode an RFC 2231 ``filename*`` parameter, which parse_options_header skips."""
    if "filename*" not in disposition.lower():
        return None
    message = Message()
    message["content-disposition"] = disposition
    value = message.get_param("filename", header="content-disposition")
    if value is None:
        return None
    return collapse_rfc2231_value(value, errors="replace")


class Part:
    """One section of the body: its headers plus a readable byte stream."""

    def __init__(self, reader: "MultipartReader", headers: Dict[str, str]):
        self._reader = reader
        self.headers = headers
        self._buffer = bytearray()
        self._eof = False
        self.closed = False

        disposition = headers.get("content-disposition", "")
        _, options = parse_options_header(disposition)
        self.form_name = options.get(b"name", b"").decode("utf-8", "replace")
        filename = options.get(b"filename")
        # None when the header has no filename parameter at all
        self.filename: Optional[str] = (
            filename.decode("utf-8", "replace") if filename is not None else _extended_filename(disposition)
        )

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """
        Read up to ``size`` bytes (everything when negative).

        Behaves like a regular file: fewer bytes than requested are only
        returned at the end of the part, and ``b""`` afterwards.
        """
        if self.closed:
            raise ValueError("read from closed part")
        while not self._eof and (size < 0 or len(self._buffer) < size):
            data = self._reader._next_data()
            if data is None:
                self._eof = True
            else:
                self._buffer += data

        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        return data

    def close(self) -> None:
        """Discard whatever is left of the part so the next one can be read."""
        if self.closed:
            return
        self._buffer.clear()
        try:
            while not self._eof:
                if self._reader._next_data() is None:
                    self._eof = True
        finally:
            self.closed = True


class MultipartReader:
    """
    Iterate the parts of a multipart body one at a time.

    Args:
        chunks: Raw request body, as an iterable of byte chunks
        boundary: Boundary from the request's Content-Type header
    """

    def __init__(self, chunks: Iterable[bytes], boundary: bytes):
        if not boundary:
            raise MultipartParseError("missing multipart boundary")
        self._chunks: Iterator[bytes] = iter(chunks)
        self._events: Deque[Tuple[str, object]] = deque()
        self._current: Optional[Part] = None
        self._finished = False
        self._exhausted = False

        self._header_field = bytearray()
        self._header_value = bytearray()
        self._headers: Dict[str, str] = {}

        self._parser = MultipartParser(boundary, callbacks={
            "on_part_begin": self._on_part_begin,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
            "on_end": self._on_end,
        })

    @classmethod
    def from_content_type(cls, content_type: str, chunks: Iterable[bytes]) -> "MultipartReader":
        _, params = parse_options_header(content_type)
        return cls(chunks, params.get(b"boundary", b""))

    def __iter__(self) -> Iterator[Part]:
        while True:
            part = self.next_part()
            if part is None:
                return
            yield part

    def next_part(self) -> Optional[Part]:
        """
        Return the next part, or None after the closing boundary.

        The previous part is closed first (its unread data is skipped).
        Raises ``MultipartParseError`` on malformed or truncated bodies.
        """
        if self._current is not None:
            self._current.close()
            self._current = None

        while True:
            while self._events:
                kind, payload = self._events.popleft()
                if kind == _HEADERS:
                    self._current = Part(self, payload)
                    return self._current
            if self._finished:
                return None
            if not self._feed():
                raise MultipartParseError("unexpected end of multipart body")

    def _next_data(self) -> Optional[bytes]:
        """Next decoded chunk of the current part, or None at its end."""
        while True:
            if self._events:
                kind, payload = self._events[0]
                if kind == _DATA:
                    self._events.popleft()
                    return payload
                if kind == _END:
                    self._events.popleft()
                    return None
                raise MultipartParseError("part is missing its closing boundary")
            if not self._feed():
                raise MultipartParseError("unexpected end of multipart body")

    def _feed(self) -> bool:
        if self._exhausted:
            return False
        try:
            chunk = next(self._chunks)
        except StopIteration:
            self._exhausted = True
            self._parser.finalize()
            return False
        if chunk:
            self._parser.write(chunk)
        return True

    # parser callbacks

    def _on_part_begin(self) -> None:
        self._headers = {}

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        name = self._header_field.decode("latin-1").strip().lower()
        self._headers[name] = self._header_value.decode("latin-1").strip()
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        self._events.append((_HEADERS, self._headers))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append((_DATA, data[start:end]))

    def _on_part_end(self) -> None:
        self._events.append((_END, None))

    def _on_end(self) -> None:
        self._finished = True

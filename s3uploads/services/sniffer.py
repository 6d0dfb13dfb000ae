from typing import Optional, Protocol

import filetype

# filetype never looks further than this into a file header
SNIFF_LIMIT = 261
UNKNOWN_TYPE = "application/octet-stream"


class ByteSource(Protocol):
    def read(self, size: int = -1) -> bytes: ...


class CountingSniffer:
    """
    Read-through wrapper that counts bytes and detects the content type.

    Every ``read`` is forwarded unchanged to the wrapped source. Until the
    type is resolved the returned bytes are also collected into a small
    prefix buffer; once that buffer holds ``SNIFF_LIMIT`` bytes, or the source
    reports end of stream, the prefix is matched against known file
    signatures and dropped. Memory use is therefore bounded by the limit no
    matter how large the stream is.
    """

    def __init__(self, source: ByteSource, limit: int = SNIFF_LIMIT):
        self._source = source
        self._limit = limit
        self._prefix: Optional[bytearray] = bytearray()
        self._file_type: Optional[str] = None
        self.count = 0

    @property
    def file_type(self) -> Optional[str]:
        """Detected MIME type, or None while still sniffing."""
        return self._file_type

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def read(self, size: int = -1) -> bytes:
        data = self._source.read(size)
        self.count += len(data)

        if self._file_type is None:
            self._prefix += data[:self._limit - len(self._prefix)]
            if not data or len(self._prefix) >= self._limit:
                self.resolve()

        return data

    def resolve(self) -> str:
        """
        Freeze the content type from whatever prefix has been collected.

        Called automatically at the limit or at end of stream; callers that
        know the stream was fully consumed may call it directly. Later calls
        return the frozen value.
        """
        if self._file_type is None:
            kind = filetype.guess(bytes(self._prefix))
            self._file_type = kind.mime if kind is not None and kind.mime else UNKNOWN_TYPE
            self._prefix = None
        return self._file_type

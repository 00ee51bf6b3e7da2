"""
Readers for the data of an entry in a ZIP stream.

The readers returned by `open_entry_body` read directly from the scanner's `StreamCursor` and stop exactly at the end
of the entry data, so that whatever follows (a data descriptor or the next header) can be decoded afterwards:

- For stored entries, the size in the header tells us where the data ends
- For deflated entries, the end is given by the final block marker in the compressed data itself. Any bytes read past
  it are pushed back into the cursor.
"""

import logging
import zlib

from abc import ABCMeta, abstractmethod
from io import BufferedIOBase
from typing import Callable, Optional

from atmfjstc.lib.archive_forensics.zip import ZipCompressionMethod

from .cursor import StreamCursor
from .errors import CorruptEntryDataError, NoUncompressedSizeError, TruncatedEntryDataError, \
    UnsupportedCompressionError
from .header import ZipEntryHeader


LOG = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 65536

ErrorCallback = Callable[[Exception], None]


def open_entry_body(
    header: ZipEntryHeader, cursor: StreamCursor, on_error: Optional[ErrorCallback] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> BufferedIOBase:
    """
    Creates a reader for the data of an entry, which must start at the current position of the cursor.

    Args:
        header: The local header of the entry.
        cursor: The cursor, positioned right after the header.
        on_error: If specified, this will be called with any exception raised while reading the data (before it is
            propagated to the caller).
        chunk_size: The maximum amount of compressed data read from the source at once.

    Returns:
        A binary file object. It does not support seeking.

    Raises:
        NoUncompressedSizeError: If the entry is stored, and its size is deferred to the data descriptor. There is no
            way of finding where the data ends in this case.
        UnsupportedCompressionError: If the compression method is neither STORE nor DEFLATE.
    """

    if header.compression_method == ZipCompressionMethod.DEFLATE:
        LOG.debug("Inflating entry '%s'", header.name)
        return _InflatingEntryReader(cursor, header.name, on_error, chunk_size)

    if header.compression_method == ZipCompressionMethod.STORE:
        LOG.debug("Reading stored entry '%s' (%d bytes)", header.name, header.uncompressed_size)

        # Note that we trust the header size even if the real size is deferred to the data descriptor, as the only
        # alternative is to give up
        if header.uncompressed_size > 0:
            return _StoredEntryReader(cursor, header.name, on_error, chunk_size, header.uncompressed_size)
        if not header.has_data_descriptor:
            return _StoredEntryReader(cursor, header.name, on_error, chunk_size, 0)

        raise NoUncompressedSizeError(header.name)

    raise UnsupportedCompressionError(header.name, header.compression_method)


class _EntryReaderBase(BufferedIOBase, metaclass=ABCMeta):
    _cursor: StreamCursor
    _entry_name: str
    _on_error: Optional[ErrorCallback]
    _chunk_size: int

    def __init__(
        self, cursor: StreamCursor, entry_name: str, on_error: Optional[ErrorCallback], chunk_size: int
    ):
        if chunk_size < 1:
            raise ValueError(f"Chunk size must be strictly positive (is: {chunk_size})")

        self._cursor = cursor
        self._entry_name = entry_name
        self._on_error = on_error
        self._chunk_size = chunk_size

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> bytes:
        infy_size = (size is None) or (size < 0)

        data = bytearray()

        while infy_size or (len(data) < size):
            chunk = self.read1(-1 if infy_size else (size - len(data)))
            if len(chunk) == 0:
                break

            data.extend(chunk)

        return bytes(data)

    def read1(self, size: int = -1) -> bytes:
        if self.closed:
            raise ValueError("Cannot read from closed entry reader")

        if size == 0:
            return b''

        return self._guarded_read_chunk(self._chunk_size if (size is None) or (size < 0) else size)

    def skip_rest(self):
        """
        Reads and discards whatever is left of the entry data, so that the cursor ends up right after it.

        This works even if the reader was closed, since the data still has to be skipped in the underlying stream.
        """
        while len(self._guarded_read_chunk(self._chunk_size)) > 0:
            pass

    def _guarded_read_chunk(self, max_size: int) -> bytes:
        try:
            return self._read_chunk(max_size)
        except Exception as e:
            if self._on_error is not None:
                self._on_error(e)
            raise

    @abstractmethod
    def _read_chunk(self, max_size: int) -> bytes:
        """
        Returns between 1 and `max_size` bytes of entry data, or an empty result if the entry data is done.
        """
        raise NotImplementedError


class _StoredEntryReader(_EntryReaderBase):
    _remaining: int

    def __init__(
        self, cursor: StreamCursor, entry_name: str, on_error: Optional[ErrorCallback], chunk_size: int, size: int
    ):
        super().__init__(cursor, entry_name, on_error, chunk_size)

        self._remaining = size

    def _read_chunk(self, max_size: int) -> bytes:
        if self._remaining == 0:
            return b''

        data = self._cursor.read(min(max_size, self._remaining))
        if len(data) == 0:
            raise TruncatedEntryDataError(self._entry_name, self._cursor.tell())

        self._remaining -= len(data)

        return data


class _InflatingEntryReader(_EntryReaderBase):
    _decompressor: 'zlib._Decompress'
    _pending: bytes = b''

    def __init__(
        self, cursor: StreamCursor, entry_name: str, on_error: Optional[ErrorCallback], chunk_size: int
    ):
        super().__init__(cursor, entry_name, on_error, chunk_size)

        self._decompressor = zlib.decompressobj(-zlib.MAX_WBITS)

    def _read_chunk(self, max_size: int) -> bytes:
        while not self._decompressor.eof:
            compressed_data = self._pending or self._cursor.read(self._chunk_size)
            if len(compressed_data) == 0:
                raise TruncatedEntryDataError(self._entry_name, self._cursor.tell())

            try:
                data = self._decompressor.decompress(compressed_data, max_size)
            except zlib.error as e:
                raise CorruptEntryDataError(self._entry_name) from e

            self._pending = self._decompressor.unconsumed_tail

            if self._decompressor.eof:
                self._cursor.unread(self._decompressor.unused_data)

            if len(data) > 0:
                return data

        return b''

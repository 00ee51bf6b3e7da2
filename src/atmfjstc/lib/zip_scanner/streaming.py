"""
This module contains the `StreamingZipScanner`, which enumerates the entries of a ZIP archive from a forward-only
byte stream (e.g. a file being downloaded), without ever looking at the central directory.
"""

import logging

from enum import Enum
from io import BufferedIOBase, TextIOBase
from typing import BinaryIO, Optional

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader
from atmfjstc.lib.error_utils import ignore_errors

from .base import ZipScanner
from .body import DEFAULT_CHUNK_SIZE, open_entry_body
from .cursor import StreamCursor
from .descriptor import DATA_DESCRIPTOR_MAGIC, ZipDataDescriptor, data_descriptor_length, decode_data_descriptor
from .errors import SCAN_COMPLETE, InvalidDataDescriptorError, InvalidFileHeaderError, NoCurrentEntryError, \
    ZipScanError
from .header import CENTRAL_DIRECTORY_MAGIC, LOCAL_FILE_HEADER_LEN, LOCAL_FILE_HEADER_MAGIC, ZipEntryHeader, \
    decode_local_header


LOG = logging.getLogger(__name__)


class ScannerState(Enum):
    AWAITING_HEADER = 'awaiting_header'
    """The next `advance` will decode a header right away. This is also the state right after an `advance`, until
    the body of the entry is opened."""
    BODY_OPEN = 'body_open'
    """The body of the current entry was opened. The next `advance` will close it and read the data descriptor, if
    the entry has one."""
    FINISHED = 'finished'
    """The scan is over. Check `last_error()` to see whether it ended normally."""


class StreamingZipScanner(ZipScanner):
    """
    Scans a ZIP archive sequentially, decoding the local file header of each entry and the data descriptor after its
    data, if present.

    Caveats:

    - When `advance` is called, whatever is left of an opened body is read and discarded, even if the caller closed
      it. There is no index to tell us where the next entry starts, so we must go through all the data of the current
      one in order to find it. The data of an entry whose body was never opened is not skipped, and will be
      interpreted as the next header.
    - Any error is fatal. Once we lose track of where the entry boundaries are, there is no way to recover.
    - Stored entries whose size is deferred to the data descriptor cannot be read (we cannot know where their data
      ends). Only the STORE and DEFLATE methods are supported.
    - Entries that are deleted or otherwise not referenced by the central directory will still be enumerated.
    - CRCs are not checked.

    The underlying file object is not closed by the scanner.
    """

    _cursor: StreamCursor
    _chunk_size: int

    _state: ScannerState = ScannerState.AWAITING_HEADER
    _header: Optional[ZipEntryHeader] = None
    _body: Optional[BufferedIOBase] = None
    _error: Optional[Exception] = None
    _last_descriptor: Optional[ZipDataDescriptor] = None

    def __init__(self, fileobj: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Constructor.

        Args:
            fileobj: A binary file object, open for reading and positioned at the start of the archive. It does not
                need to be seekable.
            chunk_size: The maximum amount of data read from the source at once, while decompressing.
        """
        if isinstance(fileobj, TextIOBase):
            raise TypeError("StreamingZipScanner works on binary, not text file objects")
        if chunk_size < 1:
            raise ValueError(f"Chunk size must be strictly positive (is: {chunk_size})")

        self._cursor = StreamCursor(fileobj)
        self._chunk_size = chunk_size

    @property
    def state(self) -> ScannerState:
        return self._state

    @property
    def last_data_descriptor(self) -> Optional[ZipDataDescriptor]:
        """
        The data descriptor most recently read, if any. Note that this is only available once the scanner has advanced
        past the entry it belongs to.
        """
        return self._last_descriptor

    def advance(self) -> bool:
        if self._state == ScannerState.BODY_OPEN:
            self._skip_body()

        self._close_body()

        if self._state == ScannerState.BODY_OPEN:
            self._finish_entry()

        if self._state == ScannerState.FINISHED:
            return False

        header_pos = self._cursor.tell()

        try:
            head = self._cursor.peek(LOCAL_FILE_HEADER_LEN)

            if LOG.isEnabledFor(logging.DEBUG):
                LOG.debug("Header at position %d:\n%s", header_pos, _hex_dump(head))

            magic = head[:len(LOCAL_FILE_HEADER_MAGIC)]

            if magic == CENTRAL_DIRECTORY_MAGIC:
                return self._stop(SCAN_COMPLETE)
            if (len(magic) == len(LOCAL_FILE_HEADER_MAGIC)) and (magic != LOCAL_FILE_HEADER_MAGIC):
                raise InvalidFileHeaderError(header_pos, magic)

            self._header = decode_local_header(BinaryReader(self._cursor, big_endian=False))
        except Exception as e:
            return self._stop(e)

        LOG.debug("Found entry: %s", self._header)

        self._state = ScannerState.AWAITING_HEADER

        return True

    def current_header(self) -> ZipEntryHeader:
        if (self._header is None) or (self._state == ScannerState.FINISHED):
            raise NoCurrentEntryError()

        return self._header

    def open_body(self) -> BufferedIOBase:
        header = self.current_header()

        if self._body is not None:
            raise ValueError(f"The body of entry '{header.name}' is already open")

        try:
            self._body = open_entry_body(header, self._cursor, self._on_body_error, self._chunk_size)
        except ZipScanError as e:
            self._stop(e)
            raise

        self._state = ScannerState.BODY_OPEN

        return self._body

    def last_error(self) -> Optional[Exception]:
        return self._error

    def close(self):
        self._close_body()

    def _skip_body(self):
        try:
            self._body.skip_rest()
        except Exception as e:
            # Normally already recorded through the body's error callback
            if self._state != ScannerState.FINISHED:
                self._stop(e)

    def _finish_entry(self):
        if not self._header.has_data_descriptor:
            return

        try:
            self._last_descriptor = self._read_data_descriptor(self._header)
        except InvalidDataDescriptorError as e:
            self._stop(e)
            return

        LOG.debug("Data descriptor for '%s': %s", self._header.name, self._last_descriptor)

    def _read_data_descriptor(self, header: ZipEntryHeader) -> ZipDataDescriptor:
        try:
            has_signature = (self._cursor.peek(len(DATA_DESCRIPTOR_MAGIC)) == DATA_DESCRIPTOR_MAGIC)

            data = BinaryReader(self._cursor, big_endian=False).read_amount(
                data_descriptor_length(header.is_zip64, has_signature), 'data descriptor'
            )

            if LOG.isEnabledFor(logging.DEBUG):
                LOG.debug("Data descriptor:\n%s", _hex_dump(data))

            return decode_data_descriptor(data, header.is_zip64, has_signature)
        except Exception as e:
            raise InvalidDataDescriptorError(header.name) from e

    def _on_body_error(self, error: Exception):
        self._stop(error)

    def _close_body(self):
        if self._body is None:
            return

        with ignore_errors():
            self._body.close()

        self._body = None

    def _stop(self, error: Exception) -> bool:
        LOG.debug("Stopping scan: %s", error)

        self._state = ScannerState.FINISHED
        self._error = error
        self._header = None

        return False


def _hex_dump(data: bytes) -> str:
    return '\n'.join(
        f"{offset:08x}  {data[offset:offset + 16].hex(' ')}"
        for offset in range(0, len(data), 16)
    )

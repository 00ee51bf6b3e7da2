"""
Exceptions raised by the ZIP scanners, and the completion marker that signals a normal end of the scan.

Note that truncation of the source while reading a fixed-size structure is reported using the `BinaryReader` errors
from ``binary_utils`` (`BinaryReaderMissingDataError`, `BinaryReaderReadPastEndError`), which carry the position and
meaning of the missing data. Errors raised by the source itself (`OSError` etc.) are passed through unchanged.
"""

from typing import Union

from atmfjstc.lib.archive_forensics.zip import ZipCompressionMethod


class ZipScanComplete(Exception):
    """
    Not really an error: this is the type of the `SCAN_COMPLETE` marker, which a scanner reports as its last error
    once it has gone through all the entries (i.e. it has reached the central directory, for a streaming scanner).

    This is never raised. Compare the scanner's `last_error()` against `SCAN_COMPLETE` instead.
    """

    def __init__(self):
        super().__init__("No more entries")


SCAN_COMPLETE = ZipScanComplete()


class ZipScanError(Exception):
    """
    Base class for all errors signaled by the scanners in this package.
    """


class InvalidFileHeaderError(ZipScanError):
    position: int
    found_magic: bytes

    def __init__(self, position: int, found_magic: bytes):
        self.position = position
        self.found_magic = found_magic

        super().__init__(f"At position {position}, expected a ZIP local file header, but found 0x{found_magic.hex()}")


class InvalidDataDescriptorError(ZipScanError):
    entry_name: str

    def __init__(self, entry_name: str):
        self.entry_name = entry_name

        super().__init__(f"Invalid data descriptor for entry '{entry_name}'")


class UnsupportedCompressionError(ZipScanError):
    entry_name: str
    method: Union[ZipCompressionMethod, int]

    def __init__(self, entry_name: str, method: Union[ZipCompressionMethod, int]):
        self.entry_name = entry_name
        self.method = method

        method_text = method.name if isinstance(method, ZipCompressionMethod) else str(method)

        super().__init__(f"Unsupported compression method {method_text} for entry '{entry_name}'")


class NoUncompressedSizeError(ZipScanError):
    entry_name: str

    def __init__(self, entry_name: str):
        self.entry_name = entry_name

        super().__init__(
            f"Missing uncompressed size for stored entry '{entry_name}' (size is deferred to the data descriptor)"
        )


class EntryDataError(ZipScanError):
    """
    Signals a problem with the data of an entry, encountered while reading it.
    """


class TruncatedEntryDataError(EntryDataError):
    entry_name: str
    position: int

    def __init__(self, entry_name: str, position: int):
        self.entry_name = entry_name
        self.position = position

        super().__init__(f"Data for entry '{entry_name}' ends prematurely at position {position}")


class CorruptEntryDataError(EntryDataError):
    entry_name: str

    def __init__(self, entry_name: str):
        self.entry_name = entry_name

        super().__init__(f"Compressed data for entry '{entry_name}' is corrupt")


class NoCurrentEntryError(ZipScanError):
    def __init__(self):
        super().__init__("There is no current entry (advance() was not called, or the scan has finished)")

"""
This package enumerates the entries of ZIP archives that can only be read sequentially, e.g. while they are being
downloaded or piped in from another program.

The usual way to read a ZIP archive (the one used by `zipfile`) is to go to the end, read the central directory, and
then jump to each of the entries listed therein. This is not possible for a stream. The `StreamingZipScanner` instead
goes through the archive from start to end, decoding each local file header, reading the entry data that follows
it, and stopping once it reaches the central directory.

Example::

    with open('archive.zip', 'rb') as f:
        scanner = StreamingZipScanner(f)

        for header, body in iter_zip_entries(scanner):
            print(header.name, len(body.read()))

For archives that *can* be accessed randomly, the `IndexedZipScanner` offers the same `ZipScanner` interface on top
of a `zipfile.ZipFile`. Use `open_zip_scanner` to pick the right one for a given file object.

See the `StreamingZipScanner` docs for the limitations of the streaming approach.
"""

import zipfile

from typing import BinaryIO

from .base import ZipScanner, iter_zip_entries
from .body import DEFAULT_CHUNK_SIZE
from .descriptor import ZipDataDescriptor
from .errors import SCAN_COMPLETE, ZipScanComplete, ZipScanError, InvalidFileHeaderError, \
    InvalidDataDescriptorError, UnsupportedCompressionError, NoUncompressedSizeError, EntryDataError, \
    TruncatedEntryDataError, CorruptEntryDataError, NoCurrentEntryError
from .header import ZipEntryHeader
from .indexed import IndexedZipScanner
from .streaming import ScannerState, StreamingZipScanner


__version__ = '1.0.0'


def open_zip_scanner(fileobj: BinaryIO, force_streaming: bool = False) -> ZipScanner:
    """
    Creates a scanner for a ZIP archive in a binary file object.

    Args:
        fileobj: The file object containing the archive. It remains owned by the caller.
        force_streaming: Use the streaming scanner even if the file object is seekable. This will enumerate the local
            headers rather than the central directory, which can be useful for forensics.

    Returns:
        An `IndexedZipScanner` if the file object is seekable, a `StreamingZipScanner` otherwise. Either way, closing
        the scanner does not close the file object.
    """

    if force_streaming or not fileobj.seekable():
        return StreamingZipScanner(fileobj)

    return IndexedZipScanner(zipfile.ZipFile(fileobj), owns_zip_file=True)

"""
This module contains the `IndexedZipScanner`, which presents an archive already opened with `zipfile` through the
same interface as the `StreamingZipScanner`.
"""

import zipfile

from io import BufferedIOBase
from typing import Optional

from atmfjstc.lib.error_utils import ignore_errors

from .base import ZipScanner
from .errors import SCAN_COMPLETE, NoCurrentEntryError
from .header import ZipEntryHeader


class IndexedZipScanner(ZipScanner):
    """
    Enumerates the entries of a `zipfile.ZipFile` in central directory order.

    As the entries can be accessed independently, a failure to open the body of one of them does not end the scan. It
    is raised, and also reported by `last_error()` until the next `advance`.

    Unless `owns_zip_file` is specified, the `ZipFile` belongs to the caller and is not closed by the scanner.
    """

    _zip_file: zipfile.ZipFile
    _owns_zip_file: bool
    _index: int = -1
    _body: Optional[BufferedIOBase] = None
    _error: Optional[Exception] = None

    def __init__(self, zip_file: zipfile.ZipFile, owns_zip_file: bool = False):
        self._zip_file = zip_file
        self._owns_zip_file = owns_zip_file

    def advance(self) -> bool:
        self._close_body()

        if self._index >= len(self._zip_file.infolist()):
            return False

        self._index += 1

        if self._index >= len(self._zip_file.infolist()):
            self._error = SCAN_COMPLETE
            return False

        self._error = None

        return True

    def current_header(self) -> ZipEntryHeader:
        return ZipEntryHeader.from_zipinfo(self._current_info())

    def open_body(self) -> BufferedIOBase:
        info = self._current_info()

        self._close_body()

        try:
            self._body = self._zip_file.open(info)
        except Exception as e:
            self._error = e
            raise

        return self._body

    def last_error(self) -> Optional[Exception]:
        return self._error

    def close(self):
        self._close_body()

        if self._owns_zip_file:
            self._zip_file.close()

    def _current_info(self) -> zipfile.ZipInfo:
        if not (0 <= self._index < len(self._zip_file.infolist())):
            raise NoCurrentEntryError()

        return self._zip_file.infolist()[self._index]

    def _close_body(self):
        if self._body is None:
            return

        with ignore_errors():
            self._body.close()

        self._body = None

"""
The interface shared by all ZIP scanners, and helpers for iterating through them.
"""

from abc import ABCMeta, abstractmethod
from io import BufferedIOBase
from typing import ContextManager, Iterator, Optional, Tuple

from .errors import SCAN_COMPLETE
from .header import ZipEntryHeader


class ZipScanner(ContextManager['ZipScanner'], metaclass=ABCMeta):
    """
    A pull iterator over the entries of a ZIP archive.

    The typical use is::

        while scanner.advance():
            header = scanner.current_header()
            with scanner.open_body() as f:
                data = f.read()

        if scanner.last_error() is not SCAN_COMPLETE:
            raise scanner.last_error()

    or, more simply, using `iter_zip_entries`.

    Scanners are not thread safe. Only one entry body can be open at a time, and it is closed by the next `advance`.
    Leaving the scanner's context also closes the current body, but never the underlying source, which belongs to the
    caller.
    """

    @abstractmethod
    def advance(self) -> bool:
        """
        Moves on to the next entry. If the body of the current entry was opened, any part of it that was not read is
        skipped.

        Returns:
            True if there is a new current entry, False if the scan has finished, either normally or due to an error.
            In the latter case, check `last_error()` to find out which.
        """
        raise NotImplementedError

    @abstractmethod
    def current_header(self) -> ZipEntryHeader:
        """
        Gets the header of the current entry.

        Raises:
            NoCurrentEntryError: If there is no current entry.
        """
        raise NotImplementedError

    @abstractmethod
    def open_body(self) -> BufferedIOBase:
        """
        Opens the (decompressed) data of the current entry for reading.

        The returned file object is only valid until the next call to `advance`.
        """
        raise NotImplementedError

    @abstractmethod
    def last_error(self) -> Optional[Exception]:
        """
        Gets the error that ended the scan, `SCAN_COMPLETE` if it ended normally, or None if it is still going on.
        """
        raise NotImplementedError

    @property
    def completed(self) -> bool:
        """
        Whether the scan has finished normally, i.e. all the entries were enumerated.
        """
        return self.last_error() is SCAN_COMPLETE

    def close(self):
        pass

    def __enter__(self) -> 'ZipScanner':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def iter_zip_entries(scanner: ZipScanner) -> Iterator[Tuple[ZipEntryHeader, BufferedIOBase]]:
    """
    Iterates through the entries in a scanner, as (header, body) pairs.

    The body of each entry is only valid until the next iteration. It need not be read fully or at all, as the scanner
    skips whatever is left of it when it advances.

    Raises:
        Exception: Whatever error ended the scan, unless it ended normally. An error opening the body of an entry is
            raised as soon as it occurs.
    """

    while scanner.advance():
        body = scanner.open_body()

        yield scanner.current_header(), body

    error = scanner.last_error()
    if error is not SCAN_COMPLETE:
        raise error

"""
This module contains the `StreamCursor` class, the single forward-only read position that a streaming scanner keeps
in its source.
"""

from io import RawIOBase
from typing import BinaryIO, Optional

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader


class StreamCursor(RawIOBase):
    """
    Wraps a (possibly non-seekable) binary file object and adds the ability to push back bytes that were read in
    excess, e.g. by a decompressor that consumed a whole chunk but only needed part of it.

    The cursor is itself a raw binary stream, so structured data can be decoded from it by wrapping it in a
    `BinaryReader`. Note that the cursor does not own the source, and closing it leaves the source open.

    The position reported by `tell` is logical: it counts bytes consumed from the source, minus those pushed back. It
    is relative to where the source was when the cursor was created.
    """

    _fileobj: BinaryIO
    _pushback: bytearray
    _position: int = 0

    def __init__(self, fileobj: BinaryIO):
        super().__init__()

        self._fileobj = fileobj
        self._pushback = bytearray()

    @property
    def name(self) -> Optional[str]:
        name = getattr(self._fileobj, 'name', None)

        return name if isinstance(name, str) and name != '' else None

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def tell(self) -> int:
        return self._position

    def readinto(self, buffer) -> int:
        """
        Reads up to ``len(buffer)`` bytes, with no retries. Pushed back data is returned first, on its own.
        """
        size = len(buffer)
        if size == 0:
            return 0

        if len(self._pushback) > 0:
            data = self._pushback[:size]
            del self._pushback[:size]
        else:
            data = self._fileobj.read(size) or b''

        buffer[:len(data)] = data
        self._position += len(data)

        return len(data)

    def peek(self, n_bytes: int) -> bytes:
        """
        Returns up to `n_bytes` of the data that follows, without consuming it. Fewer bytes are returned only if the
        data is exhausted.
        """
        data = BinaryReader(self, big_endian=False).read_at_most(n_bytes)
        self.unread(data)

        return data

    def unread(self, data: bytes):
        """
        Pushes back data so that it will be returned by the next reads, ahead of any data previously pushed back.
        """
        self._pushback[0:0] = data
        self._position -= len(data)

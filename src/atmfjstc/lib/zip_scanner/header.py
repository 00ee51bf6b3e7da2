"""
Decoding of ZIP local file headers.

A local file header consists of a fixed 30-byte part (signature, version, flags, method, MS-DOS time and date, CRC,
sizes and the lengths of the next two fields) followed by the entry name and the extra field, of the declared lengths.
"""

import zipfile

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Tuple, Type, TypeVar, Union

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader
from atmfjstc.lib.archive_forensics.zip import ZipCompressionMethod, ZipEntryFlags


LOCAL_FILE_HEADER_MAGIC = b'PK\x03\x04'
CENTRAL_DIRECTORY_MAGIC = b'PK\x01\x02'

LOCAL_FILE_HEADER_LEN = 30

ZIP64_VERSION = 45
ZIP64_EXTRA_ID = 0x0001

SIZE_OVERFLOW = 0xffffffff


@dataclass(frozen=True)
class ZipEntryHeader:
    """
    The metadata for a ZIP entry, as found in its local file header.

    Attributes:
        creator_version: The version field of the local header (i.e. the ZIP version needed to extract the entry).
            A value of 45 or more indicates a Zip64-capable entry, whose data descriptor carries 64-bit sizes.
        flags: A `ZipEntryFlags` enum with the general purpose flags of the entry.
        compression_method: A `ZipCompressionMethod` enum, or an int if the method is not recognized.
        modified_time: The raw MS-DOS modification time.
        modified_date: The raw MS-DOS modification date.
        crc32: The CRC-32 of the uncompressed data. Zero if it is deferred to the data descriptor.
        compressed_size: The size of the compressed data. Zero if it is deferred to the data descriptor.
        uncompressed_size: The size of the uncompressed data. Zero if it is deferred to the data descriptor.
        name: The entry name, decoded as UTF-8 or CP437 depending on the flags.
        raw_name: The entry name exactly as it appears in the header.
        extra: The raw extra field.

    Sizes that overflow 32 bits are widened using the Zip64 extra field, if present.
    """

    creator_version: int
    flags: ZipEntryFlags
    compression_method: Union[ZipCompressionMethod, int]
    modified_time: int
    modified_date: int
    crc32: int
    compressed_size: int
    uncompressed_size: int
    name: str
    raw_name: bytes
    extra: bytes = b''

    @property
    def has_data_descriptor(self) -> bool:
        return bool(self.flags & ZipEntryFlags.DEFERRED_CRC32)

    @property
    def is_zip64(self) -> bool:
        return self.creator_version >= ZIP64_VERSION

    @property
    def is_dir(self) -> bool:
        return self.name.endswith('/')

    @property
    def modified(self) -> Optional[datetime]:
        """
        The modification time as a naive `datetime` (ZIP timestamps have no timezone), or None if the MS-DOS date
        and time are not valid.
        """
        try:
            return datetime(
                (self.modified_date >> 9) + 1980,
                (self.modified_date >> 5) & 0xf,
                self.modified_date & 0x1f,
                self.modified_time >> 11,
                (self.modified_time >> 5) & 0x3f,
                (self.modified_time & 0x1f) * 2,
            )
        except ValueError:
            return None

    @staticmethod
    def from_zipinfo(info: zipfile.ZipInfo) -> 'ZipEntryHeader':
        """
        Builds a header from the metadata of an entry in a `zipfile.ZipFile` (i.e. as recorded in the central
        directory).
        """
        year, month, day, hour, minute, second = info.date_time

        return ZipEntryHeader(
            creator_version=info.extract_version,
            flags=ZipEntryFlags(info.flag_bits),
            compression_method=_as_enum(info.compress_type, ZipCompressionMethod),
            modified_time=(hour << 11) | (minute << 5) | (second // 2),
            modified_date=((year - 1980) << 9) | (month << 5) | day,
            crc32=info.CRC,
            compressed_size=info.compress_size,
            uncompressed_size=info.file_size,
            name=info.filename,
            raw_name=_encode_name(info.orig_filename, info.flag_bits),
            extra=info.extra,
        )


def decode_local_header(reader: BinaryReader) -> ZipEntryHeader:
    """
    Decodes a local file header.

    Args:
        reader: A little-endian `BinaryReader` positioned at the header signature. It is left positioned right after
            the extra field, i.e. at the start of the entry data.

    Returns:
        The decoded header.

    Raises:
        BinaryReaderFormatError: If the header is truncated or has the wrong signature, or if the Zip64 extra field
            is truncated.
    """

    reader.expect_magic(LOCAL_FILE_HEADER_MAGIC, 'local file header signature')

    version, flags, method, mod_time, mod_date, crc32, compressed_size, uncompressed_size, name_len, extra_len = \
        reader.read_struct('HHHHHIIIHH', 'local file header')

    raw_name = reader.read_amount(name_len, 'entry name')
    extra = reader.read_amount(extra_len, 'extra field')

    compressed_size, uncompressed_size = _widen_sizes(compressed_size, uncompressed_size, extra)

    return ZipEntryHeader(
        creator_version=version,
        flags=ZipEntryFlags(flags),
        compression_method=_as_enum(method, ZipCompressionMethod),
        modified_time=mod_time,
        modified_date=mod_date,
        crc32=crc32,
        compressed_size=compressed_size,
        uncompressed_size=uncompressed_size,
        name=_decode_name(raw_name, flags),
        raw_name=raw_name,
        extra=extra,
    )


def _iter_extra_records(extra: bytes) -> Iterable[Tuple[int, bytes]]:
    reader = BinaryReader(extra, big_endian=False)

    while True:
        record_header = reader.maybe_read_struct('HH', 'extra field record header')
        if record_header is None:
            break

        header_id, length = record_header

        yield header_id, reader.read_amount(length, f"extra field record 0x{header_id:04x}")


def _widen_sizes(compressed_size: int, uncompressed_size: int, extra: bytes) -> Tuple[int, int]:
    if SIZE_OVERFLOW not in (compressed_size, uncompressed_size):
        return compressed_size, uncompressed_size

    for header_id, data in _iter_extra_records(extra):
        if header_id == ZIP64_EXTRA_ID:
            break
    else:
        return compressed_size, uncompressed_size

    reader = BinaryReader(data, big_endian=False)

    # In a local header, the Zip64 record must hold both sizes, uncompressed first, even if only one overflowed
    if len(data) >= 16:
        zip64_uncompressed_size, zip64_compressed_size = reader.read_struct('QQ', 'Zip64 sizes')

        return (
            zip64_compressed_size if compressed_size == SIZE_OVERFLOW else compressed_size,
            zip64_uncompressed_size if uncompressed_size == SIZE_OVERFLOW else uncompressed_size,
        )

    # Some writers only record the sizes that overflowed, as in the central directory
    if uncompressed_size == SIZE_OVERFLOW:
        uncompressed_size = reader.read_fixed_size_int(8, 'Zip64 uncompressed size')
    if compressed_size == SIZE_OVERFLOW:
        compressed_size = reader.read_fixed_size_int(8, 'Zip64 compressed size')

    return compressed_size, uncompressed_size


def _decode_name(raw_name: bytes, flags: int) -> str:
    if flags & ZipEntryFlags.UTF8:
        return raw_name.decode('utf-8', errors='replace')

    return raw_name.decode('cp437')


def _encode_name(name: str, flags: int) -> bytes:
    if flags & ZipEntryFlags.UTF8:
        return name.encode('utf-8')

    try:
        return name.encode('cp437')
    except UnicodeEncodeError:
        return name.encode('utf-8')


T = TypeVar('T')


def _as_enum(raw_value: int, enum: Type[T]) -> Union[T, int]:
    try:
        return enum(raw_value)
    except ValueError:
        return raw_value

"""
Decoding of ZIP data descriptors.

A data descriptor follows the data of an entry whose local header has the `DEFERRED_CRC32` flag set, and holds the
CRC and sizes that were not known when the header was written. There are four variants in the wild, depending on:

- Whether the sizes are 32-bit or 64-bit (the latter for entries whose version is 45 or more, i.e. Zip64)
- Whether the descriptor starts with the (de-facto standard, but optional) signature ``PK\\x07\\x08``

The decoder here does no I/O. The scanner probes the first word to find out which variant it is dealing with.
"""

from dataclasses import dataclass

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader


DATA_DESCRIPTOR_MAGIC = b'PK\x07\x08'


@dataclass(frozen=True)
class ZipDataDescriptor:
    crc32: int
    compressed_size: int
    uncompressed_size: int
    is_zip64: bool = False
    has_signature: bool = False


def data_descriptor_length(is_zip64: bool, has_signature: bool) -> int:
    """
    Gets the total length of a data descriptor of the given variant, in bytes (including the signature, if any).
    """
    return (4 if has_signature else 0) + 4 + (16 if is_zip64 else 8)


def decode_data_descriptor(data: bytes, is_zip64: bool, has_signature: bool) -> ZipDataDescriptor:
    """
    Decodes a data descriptor.

    Args:
        data: The raw descriptor, exactly `data_descriptor_length(is_zip64, has_signature)` bytes long.
        is_zip64: Whether the size fields are 64-bit.
        has_signature: Whether the data starts with the descriptor signature.

    Returns:
        The decoded descriptor.

    Raises:
        ValueError: If the data is not of the correct length for the variant.
        BinaryReaderWrongMagicError: If a signature is expected but the data does not start with it.
    """

    expected_length = data_descriptor_length(is_zip64, has_signature)
    if len(data) != expected_length:
        raise ValueError(f"Data descriptor should be {expected_length} bytes long, but {len(data)} were provided")

    reader = BinaryReader(data, big_endian=False)

    if has_signature:
        reader.expect_magic(DATA_DESCRIPTOR_MAGIC, 'data descriptor signature')

    crc32, compressed_size, uncompressed_size = reader.read_struct('IQQ' if is_zip64 else 'III', 'data descriptor')

    return ZipDataDescriptor(
        crc32=crc32,
        compressed_size=compressed_size,
        uncompressed_size=uncompressed_size,
        is_zip64=is_zip64,
        has_signature=has_signature,
    )

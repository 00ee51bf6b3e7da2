import unittest

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader

from atmfjstc.lib.zip_scanner.body import open_entry_body
from atmfjstc.lib.zip_scanner.cursor import StreamCursor
from atmfjstc.lib.zip_scanner.errors import CorruptEntryDataError, NoUncompressedSizeError, \
    TruncatedEntryDataError, UnsupportedCompressionError
from atmfjstc.lib.zip_scanner.header import decode_local_header

from archive_builders import NonSeekableReader, deflate, local_header


SAMPLE_DATA = b''.join(f"line {i}: the quick brown fox\n".encode('ascii') for i in range(5000))


def _header(**kwargs):
    header_bytes = local_header(b'entry', **kwargs)

    return decode_local_header(BinaryReader(header_bytes, big_endian=False))


class StoredBodyTest(unittest.TestCase):
    def test_bounded_to_size(self):
        cursor = StreamCursor(NonSeekableReader(b'helloTRAILER'))

        body = open_entry_body(_header(method=0, uncompressed_size=5), cursor)

        self.assertEqual(body.read(), b'hello')
        self.assertEqual(body.read(), b'')
        self.assertEqual(cursor.readall(), b'TRAILER')

    def test_partial_reads(self):
        cursor = StreamCursor(NonSeekableReader(b'0123456789', max_read=2))

        body = open_entry_body(_header(method=0, uncompressed_size=8), cursor)

        self.assertEqual(body.read(3), b'012')
        self.assertEqual(body.read1(100), b'34')
        self.assertEqual(body.read(100), b'567')

    def test_empty(self):
        cursor = StreamCursor(NonSeekableReader(b'NEXT'))

        body = open_entry_body(_header(method=0, uncompressed_size=0), cursor)

        self.assertEqual(body.read(), b'')
        self.assertEqual(cursor.tell(), 0)

    def test_deferred_size_unknown(self):
        cursor = StreamCursor(NonSeekableReader(b'hello'))

        with self.assertRaises(NoUncompressedSizeError):
            open_entry_body(_header(method=0, flags=0x08, uncompressed_size=0), cursor)

    def test_deferred_size_trusts_header(self):
        cursor = StreamCursor(NonSeekableReader(b'helloPK'))

        body = open_entry_body(_header(method=0, flags=0x08, uncompressed_size=5), cursor)

        self.assertEqual(body.read(), b'hello')

    def test_truncated(self):
        errors = []
        cursor = StreamCursor(NonSeekableReader(b'hel'))

        body = open_entry_body(_header(method=0, uncompressed_size=5), cursor, on_error=errors.append)

        with self.assertRaises(TruncatedEntryDataError) as ctx:
            body.read()

        self.assertEqual(errors, [ctx.exception])
        self.assertEqual(ctx.exception.position, 3)

    def test_skip_rest(self):
        cursor = StreamCursor(NonSeekableReader(b'0123456789NEXT', max_read=3))

        body = open_entry_body(_header(method=0, uncompressed_size=10), cursor, chunk_size=4)
        body.read(2)
        body.close()

        body.skip_rest()

        self.assertEqual(cursor.readall(), b'NEXT')

    def test_closed(self):
        body = open_entry_body(_header(method=0, uncompressed_size=5), StreamCursor(NonSeekableReader(b'hello')))
        body.close()

        with self.assertRaises(ValueError):
            body.read()


class DeflatedBodyTest(unittest.TestCase):
    def test_stops_at_end_of_compressed_data(self):
        source = NonSeekableReader(deflate(SAMPLE_DATA) + b'PK\x07\x08rest')
        cursor = StreamCursor(source)

        body = open_entry_body(_header(method=8), cursor, chunk_size=1000)

        self.assertEqual(body.read(), SAMPLE_DATA)
        self.assertEqual(cursor.readall(), b'PK\x07\x08rest')

    def test_small_reads(self):
        cursor = StreamCursor(NonSeekableReader(deflate(SAMPLE_DATA) + b'after', max_read=7))

        body = open_entry_body(_header(method=8), cursor, chunk_size=64)

        parts = []
        while True:
            part = body.read(333)
            if len(part) == 0:
                break

            self.assertLessEqual(len(part), 333)
            parts.append(part)

        self.assertEqual(b''.join(parts), SAMPLE_DATA)
        self.assertEqual(cursor.readall(), b'after')

    def test_empty(self):
        cursor = StreamCursor(NonSeekableReader(deflate(b'') + b'after'))

        body = open_entry_body(_header(method=8), cursor)

        self.assertEqual(body.read(), b'')
        self.assertEqual(cursor.readall(), b'after')

    def test_skip_rest_after_close(self):
        cursor = StreamCursor(NonSeekableReader(deflate(SAMPLE_DATA) + b'after', max_read=100))

        body = open_entry_body(_header(method=8), cursor, chunk_size=64)

        with body:
            self.assertEqual(body.read(3), SAMPLE_DATA[:3])

        body.skip_rest()

        self.assertEqual(cursor.readall(), b'after')

    def test_truncated(self):
        errors = []
        compressed = deflate(SAMPLE_DATA)
        cursor = StreamCursor(NonSeekableReader(compressed[:len(compressed) // 2]))

        body = open_entry_body(_header(method=8), cursor, on_error=errors.append)

        with self.assertRaises(TruncatedEntryDataError):
            body.read()

        self.assertEqual(len(errors), 1)

    def test_corrupt(self):
        errors = []
        cursor = StreamCursor(NonSeekableReader(b'\xff' * 100))

        body = open_entry_body(_header(method=8), cursor, on_error=errors.append)

        with self.assertRaises(CorruptEntryDataError):
            body.read()

        self.assertEqual(len(errors), 1)


class UnsupportedMethodTest(unittest.TestCase):
    def test_bzip2(self):
        with self.assertRaises(UnsupportedCompressionError) as ctx:
            open_entry_body(_header(method=12, uncompressed_size=5), StreamCursor(NonSeekableReader(b'hello')))

        self.assertEqual(ctx.exception.method, 12)
        self.assertEqual(ctx.exception.entry_name, 'entry')


if __name__ == '__main__':
    unittest.main()

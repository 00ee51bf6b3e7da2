"""
The ``zipscan`` command: lists and optionally extracts the entries of a ZIP archive, reading it sequentially.

Use ``-`` as the file name to read the archive from the standard input.
"""

import logging
import re
import sys
import zipfile

from argparse import ArgumentParser, Namespace
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import BinaryIO, ContextManager, List, Optional, Pattern

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReaderFormatError
from atmfjstc.lib.cli_utils.console import console
from atmfjstc.lib.cli_utils.errors import descriptive_errors, fail, pretty_unhandled, short_format_exception

from . import IndexedZipScanner, StreamingZipScanner, ZipScanner, ZipScanError
from .header import ZipEntryHeader


COPY_BUFFER_SIZE = 1024 * 1024


@pretty_unhandled()
def main(argv: Optional[List[str]] = None):
    args = _parse_args(argv)

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            style='{',
            format='[{asctime}] {levelname}: {message}',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    match_re = _compile_match(args.match)

    if args.indexed and args.zip_file == '-':
        fail("The standard input cannot be read in indexed mode, as it is not seekable")

    with _open_source(args.zip_file) as source:
        with descriptive_errors(zipfile.BadZipFile):
            scanner = IndexedZipScanner(zipfile.ZipFile(source), owns_zip_file=True) \
                if args.indexed else StreamingZipScanner(source)

        with scanner:
            count = _process_entries(scanner, args, match_re)

    print(f"total {count}")

    if not scanner.completed:
        fail(f"Scan of '{args.zip_file}' failed: {short_format_exception(scanner.last_error())}")


def _parse_args(argv: Optional[List[str]]) -> Namespace:
    parser = ArgumentParser(
        prog='zipscan',
        description="List or extract the entries of a ZIP archive, reading it as a stream",
    )

    parser.add_argument('zip_file', metavar='ZIP_FILE', help="the archive to scan, or - for the standard input")
    parser.add_argument('--debug', action='store_true', help="print debug info")
    parser.add_argument('--extract', action='store_true', help="extract files")
    parser.add_argument(
        '--no-dir', action='store_true', dest='no_dir',
        help="don't create subdirectories - extract everything directly in the destination"
    )
    parser.add_argument('--match', metavar='REGEX', help="only process entries whose name matches this")
    parser.add_argument('--dest', metavar='DIR', default='.', help="where to extract files (default: current dir)")
    parser.add_argument(
        '--indexed', action='store_true',
        help="read the central directory instead of scanning (requires a seekable file)"
    )

    return parser.parse_args(argv)


def _compile_match(pattern: Optional[str]) -> Optional[Pattern]:
    if pattern is None:
        return None

    try:
        return re.compile(pattern)
    except re.error as e:
        fail(f"Invalid --match pattern: {e}")


@contextmanager
def _open_source(zip_file: str) -> ContextManager[BinaryIO]:
    if zip_file == '-':
        yield sys.stdin.buffer
        return

    try:
        f = open(zip_file, 'rb')
    except OSError as e:
        fail(f"Cannot open '{zip_file}': {e.strerror}")

    with f:
        yield f


def _process_entries(scanner: ZipScanner, args: Namespace, match_re: Optional[Pattern]) -> int:
    count = 0
    dest_dir = Path(args.dest)

    while scanner.advance():
        header = scanner.current_header()

        process = (match_re is None) or (match_re.search(header.name) is not None)

        if process:
            print(f"{header.compressed_size:8d} {header.uncompressed_size:8d} {header.crc32:8x} {header.name}")
            count += 1

        with descriptive_errors(ZipScanError, BinaryReaderFormatError, NotImplementedError):
            body = scanner.open_body()

        target = None
        if args.extract and process:
            if header.is_dir:
                if header.uncompressed_size != 0:
                    console.print_warning(f"Folder {header.name} has size {header.uncompressed_size}")
            else:
                target = _get_target_path(dest_dir, header, args.no_dir)

        with descriptive_errors(ZipScanError, BinaryReaderFormatError):
            if target is None:
                _consume(body, None)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)

            with target.open('wb') as f:
                _consume(body, f)

    return count


def _get_target_path(dest_dir: Path, header: ZipEntryHeader, no_dir: bool) -> Optional[Path]:
    parts = PurePosixPath(header.name.replace('\\', '/')).parts

    if no_dir:
        parts = parts[-1:]

    if (len(parts) == 0) or parts[0] == '/' or ('..' in parts) or re.match(r'^[A-Za-z]:', parts[0]):
        console.print_warning(f"Not extracting '{header.name}': path is outside the destination")
        return None

    return dest_dir.joinpath(*parts)


def _consume(body: BinaryIO, out: Optional[BinaryIO]):
    while True:
        data = body.read(COPY_BUFFER_SIZE)
        if len(data) == 0:
            break

        if out is not None:
            out.write(data)

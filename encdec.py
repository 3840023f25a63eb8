#!/usr/bin/env python3
import sys
import argparse
import base64
import binascii
import html
import io
import os
import re
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import BinaryIO, List, Optional
from urllib.parse import quote_plus, unquote_to_bytes

__version__ = "1.0"

# Verbose mode (disabled by default, enabled with --verbose)
VERBOSE = False

def log_info(msg: str):
    """Print info message only if verbose mode is enabled."""
    if VERBOSE:
        print(f"[INFO] {msg}", file=sys.stderr)

def log_warn(msg: str):
    """Print warning message only if verbose mode is enabled."""
    if VERBOSE:
        print(f"[WARN] {msg}", file=sys.stderr)

# ==========================================
#  ERRORS
# ==========================================

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_UNKNOWN_ALGORITHM = 3
EXIT_STREAM = 4
EXIT_DECODING = 5


class EncdecError(Exception):
    """Base class for every error that ends an invocation."""

    exit_code = 1


class UsageError(EncdecError):
    """Missing arguments or an invalid mode flag."""

    exit_code = EXIT_USAGE


class UnknownAlgorithmError(EncdecError):
    exit_code = EXIT_UNKNOWN_ALGORITHM

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown algorithm name '{name}'")


class StreamError(EncdecError):
    """Input could not be read or output could not be written."""

    exit_code = EXIT_STREAM


class DecodingError(EncdecError):
    """Input is not valid for the selected decoder."""

    exit_code = EXIT_DECODING

    def __init__(self, algorithm: str, reason):
        self.algorithm = algorithm
        self.reason = reason
        super().__init__(f"Malformed {algorithm} input: {reason}")

# ==========================================
#  FRAMEWORK: Abstract Base Class & Registry
# ==========================================

class CodecStrategy(ABC):
    """Abstract base class that all codecs must implement."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The command-line name for this codec."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description for help text."""
        pass

    @abstractmethod
    def encode(self, data: bytes) -> bytes:
        pass

    @abstractmethod
    def decode(self, data: bytes) -> bytes:
        pass


_REGISTRY = {}

def register_codec(cls):
    """Decorator to auto-register codecs."""
    codec = cls()
    _REGISTRY[codec.name] = codec
    return cls

# ==========================================
#  CODECS
# ==========================================

_NEWLINES = re.compile(rb"[\r\n]")
_URLSAFE_B64 = re.compile(rb"[A-Za-z0-9_-]*={0,2}")
_BAD_PERCENT = re.compile(rb"%(?![0-9A-Fa-f]{2})")
_URLSAFE_TO_STD = bytes.maketrans(b"-_", b"+/")


def _strip_newlines(data: bytes) -> bytes:
    return _NEWLINES.sub(b"", data)


@register_codec
class Base64Codec(CodecStrategy):
    name = "base64"
    description = "URL-safe base64 alphabet (- and _) with = padding."

    def encode(self, data: bytes) -> bytes:
        return base64.urlsafe_b64encode(data)

    def decode(self, data: bytes) -> bytes:
        data = _strip_newlines(data)
        # '+' and '/' belong to the standard alphabet only
        if not _URLSAFE_B64.fullmatch(data):
            raise DecodingError(self.name, "invalid character in input")
        try:
            return base64.b64decode(data.translate(_URLSAFE_TO_STD), validate=True)
        except binascii.Error as e:
            raise DecodingError(self.name, e) from e


@register_codec
class Base32Codec(CodecStrategy):
    name = "base32"
    description = "RFC 4648 standard base32 alphabet with = padding."

    def encode(self, data: bytes) -> bytes:
        return base64.b32encode(data)

    def decode(self, data: bytes) -> bytes:
        try:
            return base64.b32decode(_strip_newlines(data))
        except binascii.Error as e:
            raise DecodingError(self.name, e) from e


@register_codec
class HexCodec(CodecStrategy):
    name = "hex"
    description = "Lowercase hexadecimal, two characters per byte."

    def encode(self, data: bytes) -> bytes:
        return binascii.hexlify(data)

    def decode(self, data: bytes) -> bytes:
        # unhexlify, unlike bytes.fromhex, does not skip whitespace
        try:
            return binascii.unhexlify(data)
        except binascii.Error as e:
            raise DecodingError(self.name, e) from e


@register_codec
class UriCodec(CodecStrategy):
    """
    Percent-encoding for URL query components.

    Unreserved characters (letters, digits, '-', '_', '.', '~') are kept,
    space becomes '+', every other byte becomes %XX in uppercase hex.
    """

    name = "uri"
    description = "Query-component percent-encoding (space as +, %XX escapes)."

    def encode(self, data: bytes) -> bytes:
        return quote_plus(data, safe="").encode("ascii")

    def decode(self, data: bytes) -> bytes:
        bad = _BAD_PERCENT.search(data)
        if bad:
            sequence = data[bad.start():bad.start() + 3].decode("ascii", "replace")
            raise DecodingError(self.name, f"invalid escape {sequence!r} at offset {bad.start()}")
        return unquote_to_bytes(data.replace(b"+", b" "))


@register_codec
class HtmlCodec(CodecStrategy):
    """
    HTML entity escaping of the five significant characters.

    Text is handled as UTF-8 with surrogateescape, so bytes that are not
    valid UTF-8 pass through both directions untouched.
    """

    name = "html"
    description = "Escapes < > & ' \" as HTML entities; unknown entities are kept."

    def encode(self, data: bytes) -> bytes:
        text = data.decode("utf-8", "surrogateescape")
        return html.escape(text, quote=True).encode("utf-8", "surrogateescape")

    def decode(self, data: bytes) -> bytes:
        text = data.decode("utf-8", "surrogateescape")
        result = html.unescape(text)
        if result != text and not result.isascii():
            log_info("Entities decoded to non-ASCII characters; writing them as UTF-8.")
        return result.encode("utf-8", "surrogateescape")


# Read-only view; nothing registers after import.
ALGORITHMS = MappingProxyType(_REGISTRY)


def get_algorithm(name: str) -> CodecStrategy:
    """Look up a codec by name, ignoring case."""
    try:
        return ALGORITHMS[name.lower()]
    except KeyError:
        raise UnknownAlgorithmError(name) from None

# ==========================================
#  INPUT & TRANSFORM
# ==========================================

def resolve_input(tokens: List[str], stdin: Optional[BinaryIO] = None) -> BinaryIO:
    """
    Pick the byte source from the arguments that follow the algorithm name.

    No tokens gives empty input, a lone '-' gives standard input, and
    anything else is joined with single spaces and used literally.
    """
    if not tokens:
        log_info("No data given; using empty input.")
        return io.BytesIO(b"")
    if tokens == ["-"]:
        log_info("Reading data from standard input.")
        if stdin is not None:
            return stdin
        if sys.stdin is None:
            raise StreamError("Failed to read input: standard input is closed")
        return sys.stdin.buffer
    # fsencode restores any bytes argv could not decode
    return io.BytesIO(os.fsencode(" ".join(tokens)))


def transform(codec: CodecStrategy, encoding: bool, src: BinaryIO, dst: BinaryIO) -> int:
    """
    Run one encode or decode pass from src to dst.

    The whole input is read and converted before anything is written, so a
    DecodingError leaves dst untouched. Returns the number of bytes written.
    """
    try:
        data = src.read()
    except OSError as e:
        raise StreamError(f"Failed to read input: {e}") from e

    result = codec.encode(data) if encoding else codec.decode(data)
    log_info(f"{codec.name}: {len(data)} byte(s) in, {len(result)} byte(s) out.")

    try:
        dst.write(result)
        dst.flush()
    except OSError as e:
        raise StreamError(f"Failed to write output: {e}") from e
    return len(result)

# ==========================================
#  CLI LOGIC
# ==========================================

def list_algorithms(file=None):
    """Print all available algorithms."""
    file = file if file is not None else sys.stdout
    print("\nAlgorithms:", file=file)
    for name, codec in ALGORITHMS.items():
        print(f"  {name:<8} {codec.description}", file=file)


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="encdec",
        description="Encode or decode data with a text-safe encoding.",
        formatter_class=argparse.RawTextHelpFormatter,
        epilog="Data is read from the remaining arguments, or from standard input when it is '-'.",
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Main action group
    action_group = parser.add_mutually_exclusive_group(required=True)
    action_group.add_argument("-e", "--encode", action="store_true", help="Encode mode")
    action_group.add_argument("-d", "--decode", action="store_true", help="Decode mode")
    action_group.add_argument("-l", "--list", action="store_true", help="List all available algorithms")

    parser.add_argument("-o", "--output", metavar="FILE",
                        help="Write the result to FILE instead of standard output")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose output (info and warning messages)")

    algorithm_help = "\n".join(f"  {k:<8}: {v.description}" for k, v in ALGORITHMS.items())
    parser.add_argument("algorithm", nargs="?",
                        help=f"Algorithm name (case-insensitive).\n{algorithm_help}")
    parser.add_argument("data", nargs=argparse.REMAINDER,
                        help="Data to transform, joined by spaces; '-' reads standard input")
    return parser


def run(args) -> int:
    if args.list:
        if args.algorithm or args.data:
            log_warn("Ignoring algorithm and data arguments with --list.")
        list_algorithms()
        return EXIT_OK

    if args.algorithm is None:
        raise UsageError("algorithm name expected after -e or -d")
    codec = get_algorithm(args.algorithm)
    log_info(f"{'Encoding' if args.encode else 'Decoding'} with {codec.name}.")

    src = resolve_input(args.data)

    if args.output:
        # The output file is only created once the transform has succeeded
        out = io.BytesIO()
        transform(codec, args.encode, src, out)
        try:
            with open(args.output, "wb") as f:
                f.write(out.getvalue())
        except OSError as e:
            raise StreamError(f"Error writing output: {e}") from e
        log_info(f"Wrote {args.output}.")
    else:
        transform(codec, args.encode, src, sys.stdout.buffer)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    global VERBOSE

    VERBOSE = False
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        VERBOSE = args.verbose
        return run(args)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        list_algorithms(sys.stderr)
        return e.exit_code
    except UnknownAlgorithmError as e:
        print(f"Error: {e}", file=sys.stderr)
        list_algorithms(sys.stderr)
        return e.exit_code
    except EncdecError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        return 130

if __name__ == "__main__":
    sys.exit(main())

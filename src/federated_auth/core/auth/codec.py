"""Session codec.

Serialized provider sessions carry verbose tokens and URLs; they are gzip-compressed
and base64-encoded so they fit in size-constrained session stores as plain text.
"""

import base64
import gzip
import zlib

from .errors import SessionCodecError


def compress(plain: str) -> str:
    """Compress a serialized session into a storable blob."""
    return base64.b64encode(gzip.compress(plain.encode("utf-8"))).decode("ascii")


def decompress(blob: str) -> str:
    """Restore the serialized session from a blob produced by compress.

    Raises:
        SessionCodecError: If the blob is not valid base64, gzip or UTF-8, or is truncated
    """
    try:
        raw = base64.b64decode(blob, validate=True)
        return gzip.decompress(raw).decode("utf-8")
    # binascii.Error and UnicodeDecodeError are ValueErrors; BadGzipFile is an OSError
    except (ValueError, OSError, EOFError, zlib.error) as e:
        raise SessionCodecError(f"could not decompress stored session: {e}") from e

"""
Opening of dump files, with transparent gzip decompression.
"""

import gzip
import logging
from pathlib import Path
from typing import TextIO


def open_dump(path: str | Path, encoding: str = 'utf-8') -> TextIO:
    """Open a dump for reading as text, decompressing ``.gz`` files.

    Bytes that are not valid in ``encoding`` are kept as surrogate escapes so
    binary column data survives decoding.
    """
    path = Path(path)
    if path.suffix.lower() == '.gz':
        logging.debug(f"Reading gzip-compressed dump '{path}'")
        return gzip.open(path, 'rt', encoding=encoding, errors='surrogateescape', newline='')
    return open(path, 'r', encoding=encoding, errors='surrogateescape', newline='')

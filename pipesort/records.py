""" Records are newline-terminated lines of bytes.

A record is at most MAX_RECORD bytes, counting its
terminator.  The bound is checked where records enter
the pipeline, by `read_records`.
"""

from typing import BinaryIO, Iterable, Iterator
import logging

from .errors import RecordTooLong

logger = logging.getLogger(__name__)

MAX_RECORD = 4096

# Choices for handling an over-long record.
FAIL = 'fail'
TRUNCATE = 'truncate'

def read_records(f: BinaryIO,
                 max_record: int = MAX_RECORD,
                 on_long: str = FAIL) -> Iterator[bytes]:
    """ Yield records (without their terminator) from f.

    A final line with no terminator is still a record.
    A record longer than max_record-1 content bytes
    raises RecordTooLong (on_long='fail'), or is cut to
    max_record-1 bytes with the rest of the line
    discarded (on_long='truncate').
    """
    assert on_long in (FAIL, TRUNCATE), f"Unknown policy {on_long!r}"
    assert max_record > 1, "max_record must leave room for content"
    recno = 0
    while True:
        chunk = f.readline(max_record)
        if not chunk:
            return
        recno += 1
        if chunk.endswith(b'\n'):
            yield chunk[:-1]
            continue
        if len(chunk) < max_record:
            yield chunk # unterminated last line
            continue

        if on_long == FAIL:
            raise RecordTooLong(recno, max_record)
        logger.warning("Truncating record %d to %d bytes",
                       recno, max_record-1)
        # chunk has max_record bytes, none of them a newline
        yield chunk[:max_record-1]
        _skip_line(f, max_record)

def _skip_line(f: BinaryIO, bufsize: int) -> None:
    # Discard the rest of the current physical line.
    while True:
        rest = f.readline(bufsize)
        if not rest or rest.endswith(b'\n'):
            return

def write_records(lines: Iterable[bytes], f: BinaryIO) -> int:
    """ Write each line plus terminator to f.
    Returns the number of lines written.
    """
    n = 0
    for line in lines:
        f.write(line)
        f.write(b'\n')
        n += 1
    f.flush()
    return n

""" The worker transform: read every line, sort, write.

Run as a child process with

    python -m pipesort.worker --index 3

it reads stdin until end-of-stream and writes the sorted
lines to stdout.  Nothing is written before all input
has been read.

Exit status: 0 ok, 1 channel error, 2 out of memory.
"""

import logging
import os
import sys

import typer
from typing_extensions import Annotated

from .channel import LineChannel, PipeChannel
from .errors import ChannelError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CHANNEL = 1
EXIT_NOMEM = 2

def sort_stream(inbound: LineChannel, outbound: LineChannel) -> int:
    """ Buffer all of inbound, then write it sorted to outbound.

    Lines compare as bytes: case-sensitive, and a strict
    prefix sorts before the longer line.
    Both channels are closed on return.
    Returns the number of lines sorted.
    """
    try:
        lines = list(inbound)
    finally:
        inbound.close()
    lines.sort()

    try:
        for line in lines:
            outbound.write_line(line)
    finally:
        outbound.close()
    return len(lines)

def worker(index: Annotated[int, typer.Option(help="Worker number (for messages)")] = 0,
           verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
          ) -> None:
    logging.basicConfig(
            stream=sys.stderr,
            level=logging.INFO if verbose else logging.WARNING,
            format=f"%(asctime)s worker {index} [%(levelname)s] %(message)s")
    inbound = PipeChannel(sys.stdin.buffer, 'stdin')
    outbound = PipeChannel(sys.stdout.buffer, 'stdout')

    code = EXIT_OK
    try:
        n = sort_stream(inbound, outbound)
        logger.info("sorted %d lines (pid %d)", n, os.getpid())
    except MemoryError:
        print(f"worker {index}: out of memory", file=sys.stderr, flush=True)
        code = EXIT_NOMEM
    except ChannelError as e:
        print(f"worker {index}: {e}", file=sys.stderr, flush=True)
        code = EXIT_CHANNEL
    raise typer.Exit(code)

def run():
    typer.run(worker)

if __name__=="__main__":
    run()

""" Streaming k-way merge of individually sorted channels.

The frontier holds one head line per worker.  Since each
worker's stream is sorted, the smallest unconsumed line
overall is always the smallest head.  Equal heads are
taken lowest worker index first.
"""

from typing import Iterator, List, Optional, Sequence, Tuple
import enum
import heapq
import logging

from .channel import LineChannel
from .errors import ChannelError

logger = logging.getLogger(__name__)

class SlotState(enum.Enum):
    PENDING_FIRST_READ = 0
    HAS_HEAD = 1
    EXHAUSTED = 2

class MergeFrontier:
    """ Current head line of each worker's output stream.

    The heap contains exactly one (line, index) entry
    for every slot in the HAS_HEAD state.
    """
    def __init__(self, channels: Sequence[LineChannel]) -> None:
        self.channels = list(channels)
        n = len(self.channels)
        self.heads: List[Optional[bytes]] = [None]*n
        self.states = [SlotState.PENDING_FIRST_READ]*n
        self._heap: List[Tuple[bytes, int]] = []

    def preload(self) -> None:
        for i, state in enumerate(self.states):
            if state == SlotState.PENDING_FIRST_READ:
                self._advance(i)

    def active(self) -> bool:
        return len(self._heap) > 0

    def pop(self) -> Tuple[bytes, int]:
        """ Remove and return the smallest (line, worker index),
        then refill that worker's slot.
        """
        line, i = heapq.heappop(self._heap)
        self._advance(i)
        return line, i

    def _advance(self, i: int) -> None:
        ch = self.channels[i]
        try:
            line = ch.read_line()
        except ChannelError as e:
            logger.warning("Read from worker %d failed, treating as exhausted: %s",
                           i, e)
            line = None
        if line is None:
            self.heads[i] = None
            self.states[i] = SlotState.EXHAUSTED
            ch.close()
            return
        self.heads[i] = line
        self.states[i] = SlotState.HAS_HEAD
        heapq.heappush(self._heap, (line, i))

def merge(channels: Sequence[LineChannel]) -> Iterator[bytes]:
    """ Yield the lines of all channels in sorted order.
    Ends once every channel has reached end-of-stream.
    """
    frontier = MergeFrontier(channels)
    frontier.preload()
    while frontier.active():
        line, _ = frontier.pop()
        yield line

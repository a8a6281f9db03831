from typing import Iterable, List, Sequence
import logging

from .channel import LineChannel, close_all
from .errors import ChannelError

logger = logging.getLogger(__name__)

class Distributor:
    """ Round-robin fan-out onto the workers' inbound channels.

    A worker whose channel refuses a write is dropped from
    the rotation, and the record goes to the next live worker.
    `counts[i]` is the number of records worker i accepted.
    """
    def __init__(self, channels: Sequence[LineChannel]) -> None:
        assert len(channels) > 0, "Need at least one worker."
        self.channels = list(channels)
        n = len(self.channels)
        self.counts = [0]*n
        self.live = [True]*n
        self.cursor = 0

    def send(self, rec: bytes) -> bool:
        """ Write rec to the next live worker.
        Returns False if no live worker remains.
        """
        n = len(self.channels)
        while any(self.live):
            i = self.cursor
            self.cursor = (i+1) % n
            if not self.live[i]:
                continue
            try:
                self.channels[i].write_line(rec)
            except ChannelError as e:
                logger.warning("Dropping worker %d from rotation: %s", i, e)
                self.live[i] = False
                continue
            self.counts[i] += 1
            return True
        return False

    def close(self) -> None:
        close_all(self.channels)

    def run(self, records: Iterable[bytes]) -> List[int]:
        """ Send every record, then close all channels.

        Closing is the only signal telling a worker to start
        sorting, so it happens even if reading records fails.
        """
        try:
            for rec in records:
                if not self.send(rec):
                    logger.error("No live workers remain, stopping distribution.")
                    break
        finally:
            self.close()
        logger.info("Distributed %d records: %s", sum(self.counts), self.counts)
        return self.counts

def distribute(records: Iterable[bytes],
               channels: Sequence[LineChannel]) -> List[int]:
    return Distributor(channels).run(records)

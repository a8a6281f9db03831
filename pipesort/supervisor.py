""" The Supervisor owns the worker pool.

    input --> Distributor --> N workers (sort) --> Merger --> output

All workers and their channels exist before the first
record is read.  The Distributor runs in a background
thread while the Merger drains the workers on the calling
thread.  When the merge is complete every worker is reaped
and its exit status recorded in a RunReport.

Usage:

    report = Supervisor(SortConfig(workers=3)).run(sys.stdin.buffer,
                                                   sys.stdout.buffer)
    report.raise_for_failures()
"""

from typing import BinaryIO, Callable, Iterable, List, Optional
import logging
import threading

from .channel import close_all
from .config import SortConfig
from .distributor import Distributor
from .errors import ChannelCreationFailed, PipeSortError
from .merger import merge
from .pool import WorkerHandle, make_spawner
from .records import read_records, write_records
from .report import RunReport, WorkerExit

logger = logging.getLogger(__name__)

class Supervisor:
    def __init__(self, cfg: Optional[SortConfig] = None,
                 spawner: Optional[Callable[[int], WorkerHandle]] = None
                ) -> None:
        self.cfg = cfg if cfg is not None else SortConfig()
        self.spawner = spawner if spawner is not None else make_spawner(self.cfg)
        self.workers: List[WorkerHandle] = []

    def start(self) -> None:
        """ Spawn the whole pool, or nothing.
        """
        assert len(self.workers) == 0, "Worker pool already started."
        try:
            for i in range(self.cfg.workers):
                self.workers.append(self.spawner(i))
        except ChannelCreationFailed as e:
            logger.error("%s -- stopping %d started worker(s)",
                         e, len(self.workers))
            self.kill()
            self.reap()
            raise

    def kill(self) -> None:
        for w in self.workers:
            w.kill()

    def reap(self) -> List[WorkerExit]:
        """ Wait for every worker and record its exit status.

        Workers still running after cfg.reap_timeout seconds
        are killed.  Empties the pool.
        """
        exits = []
        for w in self.workers:
            rc = w.wait(self.cfg.reap_timeout)
            timed_out = rc is None
            if timed_out:
                logger.warning("Worker %d still running after %gs, killing it.",
                               w.index, self.cfg.reap_timeout)
                w.kill()
                rc = w.wait()
            exits.append(WorkerExit(index=w.index, pid=w.pid,
                                    returncode=rc, timed_out=timed_out))
        close_all([w.inbound for w in self.workers])
        close_all([w.outbound for w in self.workers])
        self.workers = []
        return exits

    def run(self, source: BinaryIO, sink: BinaryIO) -> RunReport:
        """ Sort the records of source onto sink.
        """
        cfg = self.cfg
        records = read_records(source, cfg.max_record, cfg.on_long_record)
        return self.run_records(records, sink)

    def run_records(self, records: Iterable[bytes], sink: BinaryIO) -> RunReport:
        if len(self.workers) == 0:
            self.start()
        report = RunReport()
        dist = Distributor([w.inbound for w in self.workers])
        feeder = threading.Thread(target=self._feed,
                                  args=(dist, records, report),
                                  name="distributor",
                                  daemon=True)
        feeder.start()
        try:
            report.emitted = write_records(
                    merge([w.outbound for w in self.workers]), sink)
        except BaseException:
            logger.error("Merge failed, stopping all workers.")
            self.kill()
            feeder.join(self.cfg.reap_timeout)
            self.reap()
            raise
        feeder.join()
        report.distributed = list(dist.counts)
        report.workers = self.reap()
        for w in report.failures():
            logger.warning("%s", w.describe())
        logger.info("Merged %d lines from %d workers.",
                    report.emitted, len(report.workers))
        return report

    def _feed(self, dist: Distributor, records: Iterable[bytes],
              report: RunReport) -> None:
        # Runs on the distributor thread.  Distributor.run closes
        # every inbound channel on the way out, so the merge
        # always terminates.
        try:
            dist.run(records)
        except Exception as e:
            logger.error("Distribution stopped: %s", e,
                         exc_info=not isinstance(e, (PipeSortError, OSError)))
            report.error = str(e)

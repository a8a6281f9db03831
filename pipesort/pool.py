""" Worker handles: a running worker plus the coordinator's
ends of its two channels.

- inbound:  write end, fed by the Distributor
- outbound: read end, drained by the Merger

Two kinds are provided.  ProcessWorker runs
`python -m pipesort.worker` (or any command that sorts
stdin to stdout) connected by OS pipes.  ThreadWorker runs
the sort in a thread over memory pipes.

A spawner is any callable `spawn(index) -> WorkerHandle`.
"""

from typing import Callable, List, Optional
import logging
import subprocess
import sys
import threading

from .channel import LineChannel, PipeChannel, memory_pipe
from .config import SortConfig
from .errors import ChannelCreationFailed
from .worker import sort_stream

logger = logging.getLogger(__name__)

class WorkerHandle:
    index: int
    pid: Optional[int] = None
    inbound: LineChannel
    outbound: LineChannel

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """ Wait for the worker to finish and return its
        exit status, or None if it is still running
        after `timeout` seconds.
        """
        raise NotImplementedError

    def kill(self) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.index}, pid={self.pid})"

class ProcessWorker(WorkerHandle):
    def __init__(self, index: int, proc: subprocess.Popen) -> None:
        self.index = index
        self.proc = proc
        self.pid = proc.pid
        self.inbound = PipeChannel(proc.stdin, f"worker {index} inbound")
        self.outbound = PipeChannel(proc.stdout, f"worker {index} outbound")

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        try:
            return self.proc.wait(timeout)
        except subprocess.TimeoutExpired:
            return None

    def kill(self) -> None:
        if self.proc.poll() is None:
            self.proc.kill()

def worker_cmd(index: int) -> List[str]:
    cmd = [sys.executable, '-m', 'pipesort.worker', '--index', str(index)]
    if logger.isEnabledFor(logging.INFO):
        cmd.append('--verbose')
    return cmd

def spawn_process(index: int, cmd: Optional[List[str]] = None) -> ProcessWorker:
    if cmd is None:
        cmd = worker_cmd(index)
    try:
        # close_fds keeps this child from holding other
        # workers' pipe ends open.
        proc = subprocess.Popen(cmd,
                                stdin=subprocess.PIPE,
                                stdout=subprocess.PIPE,
                                close_fds=True)
    except (OSError, ValueError) as e:
        raise ChannelCreationFailed(index, str(e)) from e
    logger.info("Started worker %d (pid %d)", index, proc.pid)
    return ProcessWorker(index, proc)

SortFn = Callable[[LineChannel, LineChannel], object]

class ThreadWorker(WorkerHandle):
    """ Runs `target(inbound, outbound)` in a thread.

    Exit status is 0 if target returns and 1 if it raises.
    Like a dying process, the thread releases its channel
    ends when it finishes, whatever the outcome.
    """
    def __init__(self, index: int,
                 target: SortFn = sort_stream,
                 capacity: int = 1024) -> None:
        self.index = index
        self.returncode: Optional[int] = None
        in_r, self.inbound = memory_pipe(capacity, f"worker {index} inbound")
        self.outbound, out_w = memory_pipe(capacity, f"worker {index} outbound")
        self._ends = (in_r, out_w)
        self.thread = threading.Thread(target=self._main,
                                       args=(target, in_r, out_w),
                                       name=f"worker-{index}",
                                       daemon=True)
        self.thread.start()

    def _main(self, target: SortFn,
              inbound: LineChannel, outbound: LineChannel) -> None:
        rc = 1
        try:
            target(inbound, outbound)
            rc = 0
        except Exception:
            logger.exception("Worker %d failed", self.index)
        finally:
            inbound.close()
            outbound.close()
            self.returncode = rc

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        self.thread.join(timeout)
        if self.thread.is_alive():
            return None
        return self.returncode

    def kill(self) -> None:
        # A thread can't be killed.  Break all four channel
        # ends instead, so every blocked read or write returns.
        for ch in self._ends + (self.inbound, self.outbound):
            ch.close()

def spawn_thread(index: int, capacity: int = 1024) -> ThreadWorker:
    try:
        return ThreadWorker(index, sort_stream, capacity)
    except RuntimeError as e: # can't start new thread
        raise ChannelCreationFailed(index, str(e)) from e

def make_spawner(cfg: SortConfig) -> Callable[[int], WorkerHandle]:
    if cfg.backend == 'thread':
        return lambda i: spawn_thread(i, cfg.channel_capacity)
    return lambda i: spawn_process(i, cfg.worker_cmd)

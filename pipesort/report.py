from typing import List, Optional
import signal

from pydantic import BaseModel

from .errors import WorkerAbnormalExit

# Serialize: report.model_dump_json(indent=2)
class WorkerExit(BaseModel):
    index: int
    pid: Optional[int] = None # None for thread workers
    returncode: Optional[int] = None # <0 means killed by that signal
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def describe(self) -> str:
        who = f"worker {self.index}"
        if self.pid is not None:
            who += f" (pid {self.pid})"
        rc = self.returncode
        if rc is None:
            return f"{who} was never reaped"
        if rc < 0:
            try:
                sig = signal.Signals(-rc).name
            except ValueError:
                sig = str(-rc)
            how = f"killed by signal {sig}"
        else:
            how = f"exited with status {rc}"
        if self.timed_out:
            how = "timed out and was " + how
        return f"{who} {how}"

class RunReport(BaseModel):
    """ Outcome of one sort run.

    distributed[i] counts records accepted by worker i.
    """
    workers: List[WorkerExit] = []
    distributed: List[int] = []
    emitted: int = 0
    error: Optional[str] = None # Distributor failure, if any

    @property
    def ok(self) -> bool:
        return self.error is None and all(w.ok for w in self.workers)

    def failures(self) -> List[WorkerExit]:
        return [w for w in self.workers if not w.ok]

    def raise_for_failures(self) -> None:
        failed = self.failures()
        if failed:
            raise WorkerAbnormalExit(failed)

""" Exceptions raised by the sort pipeline.

Channel errors stay local to the component that hit them.
Only a failure to start the worker pool is fatal to a run.
"""

class PipeSortError(Exception):
    pass

class ChannelCreationFailed(PipeSortError):
    """ A worker or one of its pipes could not be created.
    """
    def __init__(self, index: int, reason: str = "") -> None:
        self.index = index
        super().__init__(f"Fault starting worker {index}: {reason}")

class ChannelError(PipeSortError):
    pass

class ChannelClosed(ChannelError):
    """ Write attempted after the reader closed its end.
    """
    pass

class RecordTooLong(PipeSortError):
    def __init__(self, recno: int, limit: int) -> None:
        self.recno = recno
        self.limit = limit
        super().__init__(f"Record {recno} exceeds {limit} bytes"
                         " (including newline)")

class WorkerAbnormalExit(PipeSortError):
    """ One or more workers did not exit cleanly.

    `failures` holds the WorkerExit-s of the failed workers.
    """
    def __init__(self, failures) -> None:
        self.failures = list(failures)
        names = ", ".join(f.describe() for f in self.failures)
        super().__init__(f"{len(self.failures)} worker(s) failed: {names}")

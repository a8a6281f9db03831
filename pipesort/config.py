from typing import List, Literal, Optional
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .records import MAX_RECORD

class SortConfig(BaseModel):
    """ Settings for one sort run.

    Only `workers` matters for the plain behavior
    (5 workers, processes, fail on long records).
    """
    workers: int = Field(5, ge=1)
    max_record: int = Field(MAX_RECORD, ge=2) # bytes, including newline
    on_long_record: Literal['fail', 'truncate'] = 'fail'
    backend: Literal['process', 'thread'] = 'process'
    reap_timeout: Optional[float] = Field(None, gt=0) # seconds, None waits forever
    channel_capacity: int = Field(1024, ge=1) # lines, thread backend only
    # Command to start a worker process.  Defaults to
    # [sys.executable, '-m', 'pipesort.worker']
    worker_cmd: Optional[List[str]] = None

    @classmethod
    def load(cls, fname: str):
        with open(fname, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f)
        return cls.model_validate(cfg or {})

    def save(cfg, fname: str, overwrite=False) -> None:
        if not overwrite and Path(fname).exists():
            raise FileExistsError(f"won't overwrite {fname}")
        with open(fname, "w", encoding="utf-8") as f:
            yaml.dump(cfg.model_dump(), f, indent=2)

example_config = """
workers: 8
on_long_record: truncate
reap_timeout: 30
"""

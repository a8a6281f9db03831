from typing import Optional
from typing_extensions import Annotated
from pathlib import Path
import logging
import sys

import typer
from pydantic import ValidationError

from ..config import SortConfig
from ..errors import PipeSortError
from ..supervisor import Supervisor

app = typer.Typer(pretty_exceptions_enable=False)

def build_config(config: Optional[Path], **overrides) -> SortConfig:
    """ Options given on the command line win over the config file.
    """
    cfg = SortConfig.load(config) if config is not None else SortConfig()
    updates = {k: v for k, v in overrides.items() if v is not None}
    return SortConfig.model_validate({**cfg.model_dump(), **updates})

def complain(msg: str) -> None:
    print(f"pipesort: {msg}", file=sys.stderr, flush=True)

@app.command()
def pipesort(workers: Annotated[Optional[int],
                                typer.Option("--workers", "-n",
                                    help="Number of sort workers [default: 5]")] = None,
             config: Annotated[Optional[Path],
                               typer.Option("--config", "-c",
                                    help="YAML file with SortConfig settings")] = None,
             max_record: Annotated[Optional[int],
                                   typer.Option(help="Longest record in bytes, including newline")] = None,
             on_long_record: Annotated[Optional[str],
                                       typer.Option(help="fail or truncate")] = None,
             backend: Annotated[Optional[str],
                                typer.Option(help="process or thread")] = None,
             reap_timeout: Annotated[Optional[float],
                                     typer.Option(help="Seconds to wait for each worker to exit")] = None,
             report: Annotated[Optional[Path],
                               typer.Option(help="Write the run report here as JSON")] = None,
             verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
            ) -> None:
    """ Sort the lines of stdin onto stdout using a pool of
    worker processes and a k-way merge.
    """
    logging.basicConfig(
            stream=sys.stderr,
            level=logging.INFO if verbose else logging.WARNING,
            format="%(asctime)s %(name)s [%(levelname)s] %(message)s")

    try:
        cfg = build_config(config,
                           workers=workers,
                           max_record=max_record,
                           on_long_record=on_long_record,
                           backend=backend,
                           reap_timeout=reap_timeout)
    except (ValidationError, OSError) as e:
        complain(f"bad configuration: {e}")
        raise typer.Exit(2)

    try:
        result = Supervisor(cfg).run(sys.stdin.buffer, sys.stdout.buffer)
    except PipeSortError as e:
        complain(str(e))
        raise typer.Exit(1)
    except BrokenPipeError:
        complain("output closed early")
        raise typer.Exit(1)

    if report is not None:
        report.write_text(result.model_dump_json(indent=2), encoding="utf-8")
    if result.error is not None:
        complain(result.error)
    for w in result.failures():
        complain(w.describe())
    raise typer.Exit(0 if result.ok else 1)

def run():
    app()

if __name__=="__main__":
    run()

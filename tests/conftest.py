from pathlib import Path

import pytest

root = Path(__file__).absolute().parent.parent

@pytest.fixture
def in_repo(monkeypatch):
    """ Run from the repository root, so worker processes
    started with `python -m pipesort.worker` can import it.
    """
    monkeypatch.chdir(root)
    return root

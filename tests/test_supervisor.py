import io
import random
import sys
import time

import pytest

from pipesort.config import SortConfig
from pipesort.errors import ChannelCreationFailed, WorkerAbnormalExit
from pipesort.pool import ThreadWorker, spawn_process
from pipesort.supervisor import Supervisor

def sort_bytes(data: bytes, **kws):
    out = io.BytesIO()
    report = Supervisor(SortConfig(**kws)).run(io.BytesIO(data), out)
    return out.getvalue(), report

def random_lines(n, seed=7):
    rng = random.Random(seed)
    return [bytes(rng.choices(b'abcdXYZ019', k=rng.randint(0, 12)))
            for _ in range(n)]

@pytest.mark.parametrize("backend", ["thread", "process"])
def test_sort(backend, in_repo):
    lines = random_lines(2000)
    out, report = sort_bytes(b'\n'.join(lines) + b'\n',
                             workers=5, backend=backend)
    assert out == b''.join(x + b'\n' for x in sorted(lines))
    assert report.ok
    assert report.emitted == 2000
    assert report.distributed == [400]*5
    assert [w.index for w in report.workers] == list(range(5))
    assert all(w.returncode == 0 for w in report.workers)

@pytest.mark.parametrize("backend", ["thread", "process"])
def test_empty(backend, in_repo):
    out, report = sort_bytes(b'', workers=3, backend=backend)
    assert out == b''
    assert report.ok
    assert report.emitted == 0

@pytest.mark.parametrize("backend", ["thread", "process"])
def test_single_line(backend, in_repo):
    out, report = sort_bytes(b'apple\n', workers=3, backend=backend)
    assert out == b'apple\n'
    assert report.distributed == [1, 0, 0]

@pytest.mark.parametrize("backend", ["thread", "process"])
def test_duplicates(backend, in_repo):
    out, report = sort_bytes(b'b\na\nb\na\n', workers=2, backend=backend)
    assert out == b'a\na\nb\nb\n'
    assert report.ok

@pytest.mark.parametrize("n", [1, 2, 7])
def test_worker_counts(n):
    lines = random_lines(300, seed=n)
    out, report = sort_bytes(b''.join(x + b'\n' for x in lines),
                             workers=n, backend='thread')
    assert out.split(b'\n')[:-1] == sorted(lines)
    assert sum(report.distributed) == 300

def crash_after_reading(inbound, outbound):
    list(inbound)
    raise RuntimeError("worker crashed")

def test_thread_worker_crash():
    def spawner(i):
        if i == 1:
            return ThreadWorker(i, crash_after_reading)
        return ThreadWorker(i)

    lines = [b'%02d' % i for i in range(30)][::-1]
    out = io.BytesIO()
    report = Supervisor(SortConfig(workers=3), spawner).run_records(lines, out)

    expected = sorted(x for k, x in enumerate(lines) if k % 3 != 1)
    assert out.getvalue() == b''.join(x + b'\n' for x in expected)
    assert not report.ok
    assert [w.index for w in report.failures()] == [1]
    assert report.failures()[0].returncode == 1
    with pytest.raises(WorkerAbnormalExit) as e:
        report.raise_for_failures()
    assert "worker 1" in str(e.value)

crash_cmd = [sys.executable, '-c',
             'import sys; sys.stdin.buffer.read(); sys.exit(3)']

def test_process_worker_crash(in_repo):
    def spawner(i):
        if i == 1:
            return spawn_process(i, crash_cmd)
        return spawn_process(i)

    lines = random_lines(100)
    out = io.BytesIO()
    report = Supervisor(SortConfig(workers=3), spawner).run_records(lines, out)

    expected = sorted(x for k, x in enumerate(lines) if k % 3 != 1)
    assert out.getvalue() == b''.join(x + b'\n' for x in expected)
    failed = report.failures()
    assert len(failed) == 1
    assert failed[0].index == 1
    assert failed[0].returncode == 3
    assert failed[0].pid is not None
    assert "exited with status 3" in failed[0].describe()

def test_all_workers_fail():
    out, report = sort_bytes(b'c\nb\na\n', workers=2, worker_cmd=crash_cmd)
    assert out == b''
    assert [w.returncode for w in report.workers] == [3, 3]
    assert not report.ok

def test_spawn_failure():
    with pytest.raises(ChannelCreationFailed) as e:
        sort_bytes(b'a\n', workers=2, worker_cmd=['/nonexistent/pipesort-worker'])
    assert e.value.index == 0

def test_partial_spawn_is_undone():
    started = []
    def spawner(i):
        if i == 2:
            raise ChannelCreationFailed(i, "no more")
        w = ThreadWorker(i)
        started.append(w)
        return w

    sup = Supervisor(SortConfig(workers=4), spawner)
    with pytest.raises(ChannelCreationFailed):
        sup.start()
    assert sup.workers == []
    assert len(started) == 2
    for w in started:
        assert not w.thread.is_alive()

def test_record_too_long():
    data = b'b\na\n' + b'x'*100 + b'\nc\n'
    out, report = sort_bytes(data, workers=2, backend='thread', max_record=50)
    assert out == b'a\nb\n' # records before the bad one are still sorted
    assert not report.ok
    assert "Record 3" in report.error
    assert report.failures() == []

def test_record_truncate():
    data = b'b\n' + b'x'*100 + b'\na\n'
    out, report = sort_bytes(data, workers=2, backend='thread',
                             max_record=50, on_long_record='truncate')
    assert out == b'a\nb\n' + b'x'*49 + b'\n'
    assert report.ok

def linger(inbound, outbound):
    # finish the output, then hang until killed
    outbound.close()
    while not inbound.closed:
        time.sleep(0.01)

def test_reap_timeout_thread():
    sup = Supervisor(SortConfig(workers=1, reap_timeout=0.1),
                     lambda i: ThreadWorker(i, linger))
    report = sup.run_records([b'a'], io.BytesIO())
    assert report.workers[0].timed_out
    assert not report.ok

def test_reap_timeout_process(in_repo):
    cmd = [sys.executable, '-c', 'import os, time; os.close(1); time.sleep(60)']
    out, report = sort_bytes(b'a\n', workers=1, worker_cmd=cmd, reap_timeout=0.5)
    assert out == b''
    w = report.workers[0]
    assert w.timed_out
    assert w.returncode < 0
    assert "SIGKILL" in w.describe()

class BrokenSink:
    def write(self, data):
        raise BrokenPipeError("output closed")
    def flush(self):
        pass

def test_output_closed():
    sup = Supervisor(SortConfig(workers=3, backend='thread'))
    with pytest.raises(BrokenPipeError):
        sup.run(io.BytesIO(b'c\nb\na\n'), BrokenSink())
    assert sup.workers == []

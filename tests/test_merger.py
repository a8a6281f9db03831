import random

from pipesort.channel import LineChannel, memory_pipe
from pipesort.errors import ChannelError
from pipesort.merger import MergeFrontier, SlotState, merge

def filled(lines):
    r, w = memory_pipe(capacity=len(lines)+1)
    for x in lines:
        w.write_line(x)
    w.close()
    return r

class FlakyChannel(LineChannel):
    """ Returns `lines`, then fails instead of reporting EOF.
    """
    def __init__(self, lines):
        self.lines = list(lines)
        self.name = 'flaky'
        self._closed = False
    @property
    def closed(self):
        return self._closed
    def read_line(self):
        if self.lines:
            return self.lines.pop(0)
        raise ChannelError("read failed")
    def close(self):
        self._closed = True

def test_merge():
    chans = [filled([b'a', b'd', b'e']),
             filled([b'b', b'c']),
             filled([b'f'])]
    assert list(merge(chans)) == [b'a', b'b', b'c', b'd', b'e', b'f']
    assert all(c.closed for c in chans)

def test_empty():
    assert list(merge([filled([]), filled([])])) == []

def test_one_source():
    assert list(merge([filled([b'x', b'y'])])) == [b'x', b'y']

def test_tie_break():
    frontier = MergeFrontier([filled([b'a', b'b']),
                              filled([b'a']),
                              filled([])])
    assert frontier.states == [SlotState.PENDING_FIRST_READ]*3
    frontier.preload()
    assert frontier.states == [SlotState.HAS_HEAD,
                               SlotState.HAS_HEAD,
                               SlotState.EXHAUSTED]
    assert frontier.heads == [b'a', b'a', None]

    assert frontier.pop() == (b'a', 0)
    assert frontier.heads[0] == b'b'
    assert frontier.pop() == (b'a', 1)
    assert frontier.states[1] == SlotState.EXHAUSTED
    assert frontier.pop() == (b'b', 0)
    assert not frontier.active()
    assert frontier.states == [SlotState.EXHAUSTED]*3

def test_one_head_buffered():
    chans = [filled([b'1', b'2', b'3']), filled([b'4', b'5'])]
    frontier = MergeFrontier(chans)
    frontier.preload()
    # exactly one line taken from each source
    assert len(chans[0].buf.lines) == 2
    assert len(chans[1].buf.lines) == 1

def test_failed_source():
    flaky = FlakyChannel([b'b', b'd'])
    out = list(merge([filled([b'a', b'c', b'e']), flaky]))
    assert out == [b'a', b'b', b'c', b'd', b'e']
    assert flaky.closed

def test_merge_matches_sort():
    rng = random.Random(1234)
    for n in [1, 2, 3, 5, 8]:
        lines = [bytes(rng.choices(b'abcAB \t', k=rng.randint(0, 6)))
                 for _ in range(200)]
        parts = [sorted(lines[i::n]) for i in range(n)]
        assert list(merge([filled(p) for p in parts])) == sorted(lines)

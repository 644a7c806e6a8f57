import pytest

from nocopyio.poll import Poll, PollEvent


class _RecordingPoll(Poll):
    def __init__(self):
        self.calls = []

    def wait(self):
        self.calls.append("wait")

    def close(self):
        self.calls.append("close")

    def trigger(self):
        self.calls.append("trigger")

    def control(self, operator, event):
        self.calls.append((operator, PollEvent(event)))


@pytest.mark.parametrize(
    "event, value",
    [
        (PollEvent.READABLE, 0x1),
        (PollEvent.WRITABLE, 0x2),
        (PollEvent.DETACH, 0x3),
        (PollEvent.MOD_READABLE, 0x4),
        (PollEvent.R2RW, 0x5),
        (PollEvent.RW2R, 0x6),
    ],
)
def test_poll_event_values(event, value):
    assert int(event) == value
    assert PollEvent(value) is event


def test_unknown_poll_event_rejected():
    with pytest.raises(ValueError):
        PollEvent(0x7)


def test_poll_is_abstract():
    with pytest.raises(TypeError):
        Poll()
    assert set(Poll.__abstractmethods__) == {"wait", "close", "trigger", "control"}


def test_concrete_poll_receives_calls():
    poll = _RecordingPoll()
    operator = object()
    event = PollEvent(0x5)
    poll.control(operator, event)
    poll.trigger()
    poll.wait()
    poll.close()
    assert poll.calls == [(operator, PollEvent.R2RW), "trigger", "wait", "close"]
    assert isinstance(poll, Poll)
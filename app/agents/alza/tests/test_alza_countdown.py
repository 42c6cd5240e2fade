import asyncio
import io
import threading

import pytest

from app.agents.alza import countdown
from app.agents.alza.countdown import confirm_countdown, progress_bar, urgency_marker


@pytest.fixture(autouse=True)
def finished_listener():
    yield
    if countdown._listener is not None:
        countdown._listener.join(5)


def test_progress_bar_fills_as_time_passes():
    assert progress_bar(10, 10, width=10) == '░' * 10
    assert progress_bar(5, 10, width=10) == '█' * 5 + '░' * 5
    assert progress_bar(0, 10, width=10) == '█' * 10
    assert progress_bar(0, 0, width=4) == '█' * 4


def test_urgency_marker():
    assert urgency_marker(10) == '🟢'
    assert urgency_marker(6) == '🟡'
    assert urgency_marker(3) == '🔴'


@pytest.mark.asyncio
async def test_enter_cancels():
    out = io.StringIO()
    confirmed = await confirm_countdown(5, reader=lambda: '\n', out=out, tick=1.0)

    assert confirmed is False
    assert 'Cancelled by user' in out.getvalue()


@pytest.mark.asyncio
async def test_countdown_runs_out_without_input():
    release = threading.Event()

    def blocked_reader():
        release.wait(5)
        raise ValueError('stdin closed')

    out = io.StringIO()
    try:
        confirmed = await confirm_countdown(3, reader=blocked_reader, out=out, tick=0.01)
    finally:
        release.set()

    assert confirmed is True
    text = out.getvalue()
    assert 'Ordering in  3 seconds' in text
    assert 'Ordering in  1 seconds' in text
    assert 'Cancelled' not in text


@pytest.mark.asyncio
async def test_closed_stdin_does_not_cancel():
    def closed_reader():
        raise OSError('bad file descriptor')

    confirmed = await confirm_countdown(2, reader=closed_reader, out=io.StringIO(), tick=0.01)
    assert confirmed is True


@pytest.mark.asyncio
async def test_enter_read_by_earlier_listener_cancels_current_countdown():
    enter = threading.Event()
    reads = []

    def reader():
        reads.append(1)
        enter.wait(5)
        return '\n'

    # Runs out while its listener is still waiting for a line
    assert await confirm_countdown(1, reader=reader, out=io.StringIO(), tick=0.01) is True

    async def press_enter():
        await asyncio.sleep(0.05)
        enter.set()

    pressed = asyncio.ensure_future(press_enter())
    out = io.StringIO()
    confirmed = await confirm_countdown(5, reader=reader, out=out, tick=1.0)
    await pressed

    assert confirmed is False
    assert 'Cancelled by user' in out.getvalue()
    assert len(reads) == 1


@pytest.mark.asyncio
async def test_enter_between_countdowns_is_dropped():
    enter = threading.Event()

    def early_reader():
        enter.wait(5)
        return '\n'

    assert await confirm_countdown(1, reader=early_reader, out=io.StringIO(), tick=0.01) is True
    enter.set()
    countdown._listener.join(5)

    def closed_reader():
        raise OSError('bad file descriptor')

    assert await confirm_countdown(2, reader=closed_reader, out=io.StringIO(), tick=0.01) is True

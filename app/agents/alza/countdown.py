# app/agents/alza/countdown.py
import asyncio
import logging
import sys
import threading
from typing import Callable, Optional, TextIO

logger = logging.getLogger(__name__)

BAR_WIDTH = 40

# The countdown waiting for Enter, as (loop, queue), and the stdin reader thread
_lock = threading.Lock()
_active = None
_listener = None


def progress_bar(remaining: int, total: int, width: int = BAR_WIDTH) -> str:
    filled = ((total - remaining) * width) // total if total > 0 else width
    return '█' * filled + '░' * (width - filled)


def urgency_marker(remaining: int) -> str:
    if remaining <= 3:
        return '🔴'
    if remaining <= 6:
        return '🟡'
    return '🟢'


def _offer(queue: asyncio.Queue):
    if not queue.full():
        queue.put_nowait(True)


def _deliver():
    with _lock:
        target = _active
    if target is None:
        logger.debug("Cancel received with no countdown running")
        return
    loop, queue = target
    try:
        loop.call_soon_threadsafe(_offer, queue)
    except RuntimeError:
        # Loop already closed, countdown finished
        logger.debug("Cancel received after countdown ended")


def start_cancel_listener(reader: Callable[[], str]) -> threading.Thread:
    """
    Wait for one line of input on a daemon thread and cancel the running countdown.

    A blocked read cannot be interrupted, so a listener left over from an
    earlier countdown is reused instead of starting a second reader. The line
    goes to whichever countdown is running when it arrives.
    """
    global _listener

    def listen():
        try:
            reader()
        except (OSError, ValueError) as e:
            logger.debug(f"Cancel listener stopped: {e}")
            return
        _deliver()

    with _lock:
        if _listener is not None and _listener.is_alive():
            return _listener
        _listener = threading.Thread(target=listen, name='alza-cancel-listener', daemon=True)
        _listener.start()
        return _listener


async def confirm_countdown(
    seconds: int,
    reader: Optional[Callable[[], str]] = None,
    out: Optional[TextIO] = None,
    tick: float = 1.0,
) -> bool:
    """
    Count down before a purchase; Enter cancels.

    Returns:
        True when the countdown ran out, False when it was cancelled
    """
    global _active
    out = out or sys.stdout
    queue: asyncio.Queue = asyncio.Queue(maxsize=1)
    with _lock:
        _active = (asyncio.get_running_loop(), queue)
    try:
        start_cancel_listener(reader or sys.stdin.readline)
        for remaining in range(seconds, 0, -1):
            bar = progress_bar(remaining, seconds)
            out.write(f"\r  {urgency_marker(remaining)} Ordering in {remaining:2d} seconds [{bar}] (Enter = cancel)")
            out.flush()
            try:
                await asyncio.wait_for(queue.get(), tick)
            except asyncio.TimeoutError:
                continue
            out.write("\n\n❌ Cancelled by user\n")
            out.flush()
            return False
    finally:
        with _lock:
            _active = None

    out.write("\n\n")
    out.flush()
    return True

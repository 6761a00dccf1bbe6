"""Server-sent event frames for session request subscribers.

Frames carry ``{"type": "initial" | "update", "data": [...]}`` or
``{"type": "error", "error": "..."}``. A comment frame keeps idle
connections open.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from dietbook.core import config
from dietbook.core.errors import SchedulingError

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ': keepalive\n\n'
POLL_FAILED_MESSAGE = 'Failed to load updates.'


def initial_message(records: list[dict[str, Any]]) -> dict[str, Any]:
    return {'type': 'initial', 'data': records}


def update_message(records: list[dict[str, Any]]) -> dict[str, Any]:
    return {'type': 'update', 'data': records}


def error_message(error: str) -> dict[str, Any]:
    return {'type': 'error', 'error': error}


def format_event(payload: dict[str, Any]) -> str:
    return f'data: {json.dumps(payload, default=str)}\n\n'


async def record_events(
    fetch: Callable[[], list[dict[str, Any]]],
    poll_seconds: float | None = None,
    keepalive_seconds: float | None = None,
    max_backoff_seconds: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[str]:
    """Poll ``fetch`` and yield a frame whenever the visible records change.

    ``fetch`` is synchronous and runs in a worker thread. A failed poll,
    whatever raised it, emits an error frame and backs off exponentially
    before retrying; the stream itself stays open.
    """
    poll = config.STREAM_POLL_SECONDS if poll_seconds is None else poll_seconds
    keepalive = config.STREAM_KEEPALIVE_SECONDS if keepalive_seconds is None else keepalive_seconds
    max_backoff = config.STREAM_MAX_BACKOFF_SECONDS if max_backoff_seconds is None else max_backoff_seconds

    last_records: list[dict[str, Any]] | None = None
    idle_seconds = 0.0
    backoff = 0.0

    while True:
        try:
            records = await asyncio.to_thread(fetch)
        except SchedulingError as exc:
            logger.warning('Live update poll failed: %s', exc.message)
            failure = exc.message
        except Exception:
            logger.exception('Live update poll failed.')
            failure = POLL_FAILED_MESSAGE
        else:
            failure = None

        if failure is not None:
            yield format_event(error_message(failure))
            backoff = min(max_backoff, backoff * 2 if backoff else max(poll, 1.0))
            await sleep(backoff)
            continue

        backoff = 0.0
        if last_records is None:
            yield format_event(initial_message(records))
            last_records = records
        elif records != last_records:
            yield format_event(update_message(records))
            last_records = records
            idle_seconds = 0.0
        else:
            idle_seconds += poll
            if idle_seconds >= keepalive:
                yield KEEPALIVE_FRAME
                idle_seconds = 0.0

        await sleep(poll)

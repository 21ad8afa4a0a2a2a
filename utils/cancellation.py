"""
Cooperative cancellation for request-scoped work.

A CancelToken is handed to every network step of a page load. The owner
(usually the route watching for a client disconnect) calls cancel(); the
worker checks the token between awaits and stops before touching view state.
"""

import asyncio
import logging
from typing import Optional

from utils.exceptions import RequestCancelled

logger = logging.getLogger(__name__)


class CancelToken:

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            logger.info(f"Cancel token fired: {reason}")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelled(context={"reason": self.reason})

    async def wait(self) -> None:
        await self._event.wait()


async def run_step(token: Optional[CancelToken], func, *args, **kwargs):
    """
    Run a blocking backend call in a worker thread, honouring the token
    before and after the call. The call itself cannot be interrupted.
    """
    if token is not None:
        token.raise_if_cancelled()
    result = await asyncio.to_thread(func, *args, **kwargs)
    if token is not None:
        token.raise_if_cancelled()
    return result

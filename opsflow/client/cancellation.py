"""Cancellation handles for in-flight requests."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

REASON_TIMEOUT = "timeout"
REASON_CANCELLED = "cancelled"


class CancellationHandle:
    """Abort signal owned by a single logical call.

    The first call to :meth:`abort` wins; later calls keep the original
    reason.
    """

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def abort(self, reason: str = REASON_CANCELLED) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Block until the handle is aborted."""
        await self._event.wait()


class CancellationRegistry:
    """Map request identities to the handle of their in-flight call."""

    def __init__(self) -> None:
        self._handles: Dict[str, CancellationHandle] = {}

    def register(self, request_id: str) -> CancellationHandle:
        """Install a fresh handle under ``request_id`` (last registration wins)."""
        handle = CancellationHandle(request_id)
        self._handles[request_id] = handle
        return handle

    def discard(self, request_id: str, handle: CancellationHandle) -> None:
        """Remove ``request_id`` only while it still maps to ``handle``."""
        if self._handles.get(request_id) is handle:
            del self._handles[request_id]

    def cancel(self, request_id: str) -> bool:
        """Abort and forget the handle for ``request_id``.

        Returns ``False`` when nothing was registered under that id.
        """
        handle = self._handles.pop(request_id, None)
        if handle is None:
            return False
        logger.info(f"Cancelling request {request_id}")
        handle.abort(REASON_CANCELLED)
        return True

    def cancel_all(self) -> int:
        """Abort every registered handle and return how many were cancelled."""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.abort(REASON_CANCELLED)
        if handles:
            logger.info(f"Cancelled {len(handles)} in-flight request(s)")
        return len(handles)

    @property
    def pending(self) -> List[str]:
        return list(self._handles)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

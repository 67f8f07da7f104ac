"""Registry of live user inputs, used to cut off stale in-flight model calls."""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)

# User input ids containing this marker belong to async agents that may outlive
# the root input that spawned them.
ASYNC_INPUT_MARKER = "-async-"


class LiveUserInputs:
    """
    Map from user id to the ordered list of that user's live root input ids.

    A call is live while its own input id, or any prefix of it that was started as a
    root input, is registered. Derived ids (``<root>-step-2``, ``<root>-child``)
    therefore inherit liveness from their root.
    """

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._live: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def disable_check(self) -> None:
        """Treat every input as live (tests and benchmarks)."""
        self._enabled = False

    def start_user_input(self, user_id: str, user_input_id: str) -> None:
        with self._lock:
            self._live.setdefault(user_id, []).append(user_input_id)

    def end_user_input(self, user_id: str, user_input_id: str) -> None:
        with self._lock:
            ids = self._live.get(user_id)
            if ids is None or user_input_id not in ids:
                logger.debug(
                    "Tried to end user input with incorrect userId or userInputId",
                    extra={
                        "user_id": user_id,
                        "user_input_id": user_input_id,
                        "live_user_input_ids": list(ids) if ids else None,
                    },
                )
                return
            remaining = [i for i in ids if i != user_input_id]
            if remaining:
                self._live[user_id] = remaining
            else:
                del self._live[user_id]

    def check_live_user_input(self, user_id: str | None, user_input_id: str) -> bool:
        if not self._enabled:
            return True
        if not user_id:
            return False
        is_async = ASYNC_INPUT_MARKER in user_input_id
        with self._lock:
            ids = self._live.get(user_id)
            if not ids:
                return is_async
            return is_async or any(user_input_id.startswith(stored) for stored in ids)

    def get_live_user_input_ids(self, user_id: str | None) -> list[str] | None:
        if not user_id:
            return None
        with self._lock:
            ids = self._live.get(user_id)
            return list(ids) if ids is not None else None


__all__ = ["ASYNC_INPUT_MARKER", "LiveUserInputs"]

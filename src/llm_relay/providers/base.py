"""Abstract provider adapter: one implementation per provider wire format."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from ..models import CanonicalEvent, ProviderRequest, UsageTracker


class ProviderAdapter(ABC):
    """
    Turns one provider's native chunk stream into canonical events.

    Adapters own their SDK client. Callers never see the raw client, only the
    ``TextDelta`` / ``ReasoningDelta`` / ``ErrorFrame`` sequence and the usage the
    adapter writes into ``usage`` while streaming.
    """

    #: Provider family name used in logs and error messages.
    provider: str = ""
    #: Wire dialect spoken by this adapter.
    dialect: str = ""

    @abstractmethod
    def stream(
        self,
        request: ProviderRequest,
        usage: UsageTracker,
    ) -> AsyncIterator[CanonicalEvent]:
        """Open the provider stream and yield canonical events in arrival order.

        Exceptions raised by the SDK propagate unchanged; classification happens in
        the caller. Errors the provider reports inside the stream payload are
        yielded as ``ErrorFrame`` instead.
        """
        ...

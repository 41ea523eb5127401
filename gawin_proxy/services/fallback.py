"""
Fallback sequencer.

Walks a route's adapters in their fixed priority order, one at a time, and
stops at the first success. That result is handed back untouched. When every
adapter fails the caller gets a sentinel failure whose ``error_reason``
aggregates ``"<adapter>:<reason>"`` for each attempt.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import httpx

from ..models.api_models import ProviderResult
from .providers.base import ProviderAdapter

logger = logging.getLogger("Gawin.Pipeline.Fallback")

REASON_ADAPTER_ERROR = "adapter_error"


@dataclass
class FallbackChainState:
    adapters: Tuple[str, ...]
    current_index: int = 0
    attempts: List[Tuple[str, str]] = field(default_factory=list)

    def record_failure(self, adapter_name: str, reason: str) -> None:
        self.attempts.append((adapter_name, reason))

    def aggregate_reason(self) -> str:
        return "; ".join(f"{name}:{reason}" for name, reason in self.attempts)


@dataclass(frozen=True)
class ChainOutcome:
    result: ProviderResult
    state: FallbackChainState

    @property
    def succeeded(self) -> bool:
        return self.result.success

    @property
    def fallback_used(self) -> bool:
        """True when the winning adapter was not the first in the chain."""
        return bool(self.state.attempts)


class FallbackSequencer:
    def __init__(self, adapters: Sequence[ProviderAdapter]):
        if not adapters:
            raise ValueError("FallbackSequencer needs at least one adapter")
        self.adapters = list(adapters)

    async def run(self, validated, http_client: httpx.AsyncClient, request_id: str = "-") -> ChainOutcome:
        log_prefix = f"RID-{request_id}"
        state = FallbackChainState(adapters=tuple(a.name for a in self.adapters))

        for index, adapter in enumerate(self.adapters):
            state.current_index = index
            try:
                result = await adapter.invoke(validated, http_client, request_id=request_id)
            except Exception as e:
                logger.error(f"{log_prefix}: adapter '{adapter.name}' raised unexpectedly: {e}", exc_info=True)
                result = ProviderResult.failure(adapter.name, REASON_ADAPTER_ERROR)

            if result.success:
                if state.attempts:
                    logger.info(f"{log_prefix}: '{adapter.name}' answered after fallback ({state.aggregate_reason()}).")
                return ChainOutcome(result=result, state=state)

            reason = result.error_reason or REASON_ADAPTER_ERROR
            state.record_failure(adapter.name, reason)
            logger.warning(f"{log_prefix}: '{adapter.name}' failed ({reason}), {len(self.adapters) - index - 1} adapter(s) left.")

        aggregate = state.aggregate_reason()
        logger.error(f"{log_prefix}: all adapters failed: {aggregate}")
        return ChainOutcome(result=ProviderResult(success=False, error_reason=aggregate), state=state)

    def names(self) -> List[str]:
        return [a.name for a in self.adapters]


"""
Chat pipeline: validate, walk the route's fallback chain, and fall through
to the terminal responder when every adapter failed.

Validating -> Attempting(i) -> Succeeded, or
Validating -> Attempting(i) -> AllFailed -> Responding
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx

from ..models.api_models import ProviderResult
from .fallback import FallbackSequencer
from .terminal_responder import TerminalResponder
from .validation import ValidationService, validate_chat_request

logger = logging.getLogger("Gawin.Pipeline")


@dataclass(frozen=True)
class PipelineOutcome:
    route: str
    result: ProviderResult
    attempts: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    terminal: bool = False

    @property
    def fallback_used(self) -> bool:
        return self.terminal or bool(self.attempts)

    @property
    def fallback_reasons(self) -> List[str]:
        return [f"{name}:{reason}" for name, reason in self.attempts]


UsageRecorder = Callable[[str, PipelineOutcome], Awaitable[None]]


class ChatPipeline:
    def __init__(
        self,
        route: str,
        validation_service: ValidationService,
        sequencer: FallbackSequencer,
        responder: TerminalResponder,
        usage_recorder: Optional[UsageRecorder] = None,
    ):
        self.route = route
        self.validation_service = validation_service
        self.sequencer = sequencer
        self.responder = responder
        self.usage_recorder = usage_recorder

    async def handle(self, payload: Any, http_client: httpx.AsyncClient, request_id: str = "-") -> PipelineOutcome:
        """
        Raises MalformedRequestError / ContentPolicyError before any adapter
        is touched. Otherwise always returns a successful outcome.
        """
        log_prefix = f"RID-{request_id}"
        validated = validate_chat_request(payload, self.validation_service)
        logger.info(
            f"{log_prefix}: route '{self.route}' validated ({len(validated.messages)} messages), "
            f"chain: {self.sequencer.names()}"
        )

        chain = await self.sequencer.run(validated, http_client, request_id=request_id)
        attempts = tuple(chain.state.attempts)
        if chain.succeeded:
            outcome = PipelineOutcome(route=self.route, result=chain.result, attempts=attempts)
        else:
            result = self.responder.respond(validated, chain.result.error_reason or "", request_id=request_id)
            outcome = PipelineOutcome(route=self.route, result=result, attempts=attempts, terminal=True)

        await self._record_usage(request_id, outcome)
        return outcome

    async def _record_usage(self, request_id: str, outcome: PipelineOutcome) -> None:
        if self.usage_recorder is None:
            return
        try:
            await self.usage_recorder(request_id, outcome)
        except Exception as e:
            logger.error(f"RID-{request_id}: failed to persist chat usage record: {e}", exc_info=True)

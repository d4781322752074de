"""
Multi-round tool-calling loop over a completion service.

One `RoundController.run` call drives a single user turn:

    AWAITING_COMPLETION -> FINAL
    AWAITING_COMPLETION -> TOOL_REQUESTED -> AWAITING_COMPLETION -> ...
    ... -> EXHAUSTED -> forced finalization

Every round strictly grows the message log: the assistant message that
requested tools is committed together with one tool result per call, in call
order, before the next completion call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import assert_never

from chat_agent.app.config import MAX_ROUNDS
from chat_agent.infrastructure.data_models import (
    CompletionClient,
    CompletionServiceError,
    FinalAnswer,
    Message,
    ServiceError,
    ToolContext,
    ToolRequested,
)
from chat_agent.services.message_log import MessageLog
from chat_agent.services.tool_registry import ToolDispatcher

logger = logging.getLogger(__name__)

FINALIZE_DIRECTIVE = (
    "Summarize all the data you've gathered and provide your final answer now. "
    "Do not call any more tools."
)
NO_RESPONSE_APOLOGY = "Sorry, I could not generate a response."
FINALIZE_FAILED_APOLOGY = (
    "Sorry, I gathered data but could not generate a final response. Please try again."
)
FALLBACK_EMPTY_TEXT = "No response."


class TurnState(Enum):
    AWAITING_COMPLETION = "awaiting_completion"
    TOOL_REQUESTED = "tool_requested"
    FINAL = "final"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class TurnResult:
    text: str
    state: TurnState
    rounds: int
    fallback_used: bool = False


class ForcedFinalizer:
    """Compels a final answer once the round budget is spent."""

    def __init__(self, client: CompletionClient, directive: str = FINALIZE_DIRECTIVE) -> None:
        self.client = client
        self.directive = directive

    async def finalize(self, log: MessageLog, system_prompt: str | None = None) -> str:
        """
        Append the directive and make one last completion call with tools disabled.

        Never raises for service failures and never returns an empty answer.
        """
        logger.warning("Round budget exhausted, forcing a final answer")
        await log.append(Message(role="user", content=self.directive))
        outcome = await self.client.complete(log.completion_messages(system_prompt), None)

        match outcome:
            case FinalAnswer(text=text) | ToolRequested(text=text) if text.strip():
                return text
            case FinalAnswer() | ToolRequested():
                return NO_RESPONSE_APOLOGY
            case ServiceError(reason=reason):
                logger.error(f"Forced finalization failed: {reason}")
                return FINALIZE_FAILED_APOLOGY
            case _:
                assert_never(outcome)


class RoundController:
    """
    The orchestration loop shared by every assistant.

    Args:
        client: Completion service adapter.
        dispatcher: Executes tool calls against the assistant's registry.
        max_rounds: Maximum number of tool-requesting rounds per turn.
        finalizer: Fallback used when the round budget runs out.
    """

    def __init__(
        self,
        client: CompletionClient,
        dispatcher: ToolDispatcher,
        *,
        max_rounds: int = MAX_ROUNDS,
        finalizer: ForcedFinalizer | None = None,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.client = client
        self.dispatcher = dispatcher
        self.max_rounds = max_rounds
        self.finalizer = finalizer or ForcedFinalizer(client)

    async def run(
        self,
        log: MessageLog,
        context: ToolContext,
        system_prompt: str | None = None,
    ) -> TurnResult:
        """
        Drive the completion/tool loop until a final answer exists.

        The final assistant message is appended to the log before returning.

        Raises:
            CompletionServiceError: On a service failure after the first round, or
                when the first-round fallback also fails.
            MessageStoreError: If the log cannot be persisted.
        """
        tools = self.dispatcher.registry.catalogue() or None
        rounds = 0

        while rounds < self.max_rounds:
            messages = log.completion_messages(system_prompt)
            logger.info(f"Round {rounds + 1} | messages: {len(messages)}")
            outcome = await self.client.complete(messages, tools)

            match outcome:
                case ServiceError(reason=reason) if rounds == 0:
                    logger.error(f"Completion failed on first round ({reason}), retrying without tools")
                    text = await self._fallback(messages)
                    await log.append(Message(role="assistant", content=text))
                    return TurnResult(text=text, state=TurnState.FINAL, rounds=rounds, fallback_used=True)

                case ServiceError(reason=reason, status_code=status_code):
                    logger.error(f"Completion failed on round {rounds + 1}: {reason}")
                    raise CompletionServiceError(reason, status_code)

                case ToolRequested(calls=calls, text=text):
                    results = await self.dispatcher.dispatch_all(calls, context)
                    await log.append(
                        Message(role="assistant", content=text, tool_calls=calls),
                        *(result.to_message() for result in results),
                    )
                    rounds += 1

                case FinalAnswer(text=text):
                    final_text = text if text.strip() else NO_RESPONSE_APOLOGY
                    await log.append(Message(role="assistant", content=final_text))
                    return TurnResult(text=final_text, state=TurnState.FINAL, rounds=rounds)

                case _:
                    assert_never(outcome)

        text = await self.finalizer.finalize(log, system_prompt)
        await log.append(Message(role="assistant", content=text))
        return TurnResult(text=text, state=TurnState.EXHAUSTED, rounds=rounds)

    async def _fallback(self, messages: list[Message]) -> str:
        """One retry with tools disabled and search augmentation enabled."""
        outcome = await self.client.complete(messages, None, search=True)
        match outcome:
            case FinalAnswer(text=text) | ToolRequested(text=text):
                return text if text.strip() else FALLBACK_EMPTY_TEXT
            case ServiceError(reason=reason, status_code=status_code):
                logger.error(f"Fallback completion failed: {reason}")
                raise CompletionServiceError(reason, status_code)
            case _:
                assert_never(outcome)

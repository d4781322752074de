"""
Runs one user turn for a named assistant.

Loads the session log, records the user message, renders the system prompt,
then hands the log to the round controller.
"""

import logging
from typing import Any

from chat_agent.app.config import MAX_ROUNDS
from chat_agent.infrastructure.data_models import (
    CompletionClient,
    Message,
    SessionKey,
    ToolContext,
)
from chat_agent.infrastructure.records_client import RecordsClient, RecordsError
from chat_agent.services.assistants import ASSISTANTS, Assistant
from chat_agent.services.message_log import MessageLog, MessageStore
from chat_agent.services.renderer_service import render_prompt
from chat_agent.services.round_controller import RoundController, TurnResult
from chat_agent.services.session_service import set_title_best_effort
from chat_agent.services.streaming_relay import DEFAULT_CHUNK_SIZE
from chat_agent.services.tool_registry import ToolDeps, ToolDispatcher

logger = logging.getLogger(__name__)


class UnknownAssistantError(LookupError):
    """No assistant is registered under the requested name."""


class ChatService:
    def __init__(
        self,
        store: MessageStore,
        completion: CompletionClient,
        records: RecordsClient,
        *,
        assistants: dict[str, Assistant] | None = None,
        max_rounds: int = MAX_ROUNDS,
        tool_timeout: float = 15.0,
        search_timeout: float = 60.0,
        parallel_tool_calls: bool = True,
        relay_chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.store = store
        self.completion = completion
        self.records = records
        self.assistants = assistants if assistants is not None else ASSISTANTS
        self.max_rounds = max_rounds
        self.tool_timeout = tool_timeout
        self.search_timeout = search_timeout
        self.parallel_tool_calls = parallel_tool_calls
        self.relay_chunk_size = relay_chunk_size

    def get_assistant(self, name: str) -> Assistant:
        assistant = self.assistants.get(name)
        if assistant is None:
            raise UnknownAssistantError(f"Unknown assistant: {name}")
        return assistant

    async def _load_profile(self, assistant: Assistant, tenant_id: str) -> dict[str, Any]:
        if assistant.profile_loader is None:
            return {}
        try:
            return await assistant.profile_loader(self.records, tenant_id)
        except RecordsError as e:
            logger.warning(f"Profile for tenant {tenant_id} unavailable: {e}")
            return {}

    async def submit_turn(self, assistant_name: str, key: SessionKey, user_text: str) -> TurnResult:
        """
        Append the user's message and drive the assistant to a final answer.

        Raises:
            UnknownAssistantError: If `assistant_name` is not registered.
            ValueError: If the message is blank.
            CompletionServiceError: If the completion service fails the turn.
            MessageStoreError: If the session log cannot be read or written.
        """
        assistant = self.get_assistant(assistant_name)
        if not user_text.strip():
            raise ValueError("Message must not be empty")

        profile = await self._load_profile(assistant, key.tenant_id)

        log = await MessageLog.load(self.store, key)
        await log.append(Message(role="user", content=user_text))
        if log.user_turn_count() == 1:
            await set_title_best_effort(self.store, key, user_text)

        system_prompt = render_prompt(assistant.prompt_name, profile)
        deps = ToolDeps(records=self.records, completion=self.completion, search_timeout=self.search_timeout)
        dispatcher = ToolDispatcher(
            assistant.build_registry(deps),
            timeout=self.tool_timeout,
            parallel=self.parallel_tool_calls,
        )
        controller = RoundController(self.completion, dispatcher, max_rounds=self.max_rounds)
        context = ToolContext(
            tenant_id=key.tenant_id,
            user_id=key.user_id,
            session_id=key.session_id,
            user_text=user_text,
            profile=profile,
        )

        logger.info(f"Turn start | assistant: {assistant.name} | session: {key.session_id}")
        result = await controller.run(log, context, system_prompt)
        logger.info(
            f"Turn done | state: {result.state.value} | rounds: {result.rounds} | "
            f"fallback: {result.fallback_used}"
        )
        return result

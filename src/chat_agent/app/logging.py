import logging

from chat_agent.app.process_event import ChatRequest
from chat_agent.services.round_controller import TurnResult


def log_chat_request(request: ChatRequest, assistant: str, logger: logging.Logger) -> None:
    logger.info(f"Chat request for assistant: {assistant}")
    logger.info(f"Tenant: {request.tenant_id} | User: {request.user_id}")
    logger.info(f"Session: {request.session_id or 'new'}")
    logger.debug(f"Message: {request.message}")


def log_turn_result(result: TurnResult, logger: logging.Logger) -> None:
    logger.info(f"Final state: {result.state.value}")
    logger.info(f"Tool rounds: {result.rounds}")
    if result.fallback_used:
        logger.info("Answer produced by the no-tool fallback")
    logger.debug(f"Answer: {result.text}")

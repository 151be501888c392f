from __future__ import annotations

import json
import logging
from typing import Any, Iterator

from sqlalchemy.orm import Session

from database.models import User
from operators.project_operator import get_project_by_id

from .config import AgentConfig
from .executor import ToolExecutor
from .history import ChatHistoryStore
from .llm import CompletionClient
from .prompts import get_system_prompt
from .tools import get_tools, parse_tool_arguments_lenient
from .types import (
    AgentEvent,
    AgentRequest,
    ConversationMessage,
    ToolCallRequest,
    ToolContext,
    TurnState,
)


logger = logging.getLogger(__name__)

NO_RESPONSE_ERROR = "No response from LLM"
TOOL_LIMIT_ERROR = "Maximum tool calls reached"
ITERATION_LIMIT_ERROR = "Maximum iterations reached without completion"
FALLBACK_ERROR = "Agent error"


def run_agent(
    db: Session,
    request: AgentRequest,
    config: AgentConfig | None = None,
    completion_client: CompletionClient | None = None,
    tool_executor: ToolExecutor | None = None,
) -> Iterator[AgentEvent]:
    """
    Run one director turn and yield its events.

    The stream is zero or more ``tool_call``/``tool_result`` pairs, then either
    ``text`` chunks followed by ``done``, a bare ``done``, or a single
    ``error``. Everything persisted before a failure stays persisted.
    """
    config = config or AgentConfig.from_env()
    completion_client = completion_client or CompletionClient(config)
    tool_executor = tool_executor or ToolExecutor(db, config)

    try:
        yield from _run_turn(db, request, config, completion_client, tool_executor)
    except Exception as exc:
        db.rollback()
        logger.exception("Director turn failed for project %s", request.project_id)
        yield AgentEvent.error(str(exc) or FALLBACK_ERROR)


def _run_turn(
    db: Session,
    request: AgentRequest,
    config: AgentConfig,
    completion_client: CompletionClient,
    tool_executor: ToolExecutor,
) -> Iterator[AgentEvent]:
    project = get_project_by_id(request.project_id, db)
    if project is None or project.owner_id != request.user_id:
        yield AgentEvent.error("Project not found")
        return

    user = db.query(User).filter(User.user_id == request.user_id).first()
    model = (
        request.model
        or (user.preferred_llm_model if user else None)
        or config.default_llm_model
    )
    logger.info(
        "Director turn start project=%s user=%s model=%s",
        project.project_id,
        request.user_id,
        model,
    )

    history = ChatHistoryStore(db, limit=config.history_limit)
    system_prompt = get_system_prompt(
        project_name=project.project_name,
        width=project.width,
        height=project.height,
        fps=project.fps,
    )
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    messages.extend(m.to_openai() for m in history.load_context(project.project_id))

    user_message = ConversationMessage(role="user", content=request.message)
    history.append(project.project_id, user_message)
    messages.append(user_message.to_openai())
    _log_payload(config, "user_message", request.message)

    tools = get_tools()
    context = ToolContext(user_id=request.user_id, project_id=project.project_id)
    state = TurnState()

    while state.iterations < config.max_iterations:
        state.iterations += 1
        logger.debug("Director iteration %s", state.iterations)

        response = completion_client.complete(messages, model, tools=tools, tool_choice="auto")
        message = _first_message(response)
        if message is None:
            logger.error("Completion returned no message (model=%s)", model)
            yield AgentEvent.error(NO_RESPONSE_ERROR)
            return

        tool_calls = [ToolCallRequest.from_openai(tc) for tc in message.tool_calls or []]
        if tool_calls:
            assistant = ConversationMessage(
                role="assistant",
                content=message.content or "",
                tool_calls=tool_calls,
            )
            history.append(project.project_id, assistant)
            messages.append(assistant.to_openai())

            for call in tool_calls:
                if state.tool_calls >= config.max_tool_calls:
                    logger.warning(
                        "Tool call limit of %s reached, skipping %s (%s)",
                        config.max_tool_calls,
                        call.name,
                        call.id,
                    )
                    yield AgentEvent.error(TOOL_LIMIT_ERROR)
                    return

                arguments = parse_tool_arguments_lenient(call)
                _log_payload(config, "tool_call", {"name": call.name, "arguments": arguments})
                yield AgentEvent.tool_call(call.id, call.name, arguments)

                result = tool_executor.execute(call.name, arguments, context)
                state.tool_calls += 1
                state.executed.append(call.name)
                _log_payload(config, "tool_result", {"name": call.name, "result": result.to_payload()})
                yield AgentEvent.tool_result(call.id, call.name, result)

                tool_message = ConversationMessage(
                    role="tool",
                    content=json.dumps(result.to_payload(), default=str),
                    tool_call_id=call.id,
                    name=call.name,
                )
                history.append(project.project_id, tool_message)
                messages.append(tool_message.to_openai())
            continue

        content = message.content or ""
        if not content:
            logger.info("Director turn ended without content or tool calls")
            yield AgentEvent.done()
            return

        # Re-request as a stream with tools disabled so the answer arrives incrementally
        chunks: list[str] = []
        for chunk in completion_client.stream(messages, model, tools=tools, tool_choice="none"):
            chunks.append(chunk)
            yield AgentEvent.text(chunk)
        final_content = "".join(chunks)
        if not final_content:
            final_content = content
            yield AgentEvent.text(content)

        saved = history.append(
            project.project_id,
            ConversationMessage(role="assistant", content=final_content),
        )
        _log_payload(config, "final_response", final_content)
        logger.info(
            "Director turn done project=%s iterations=%s tools=%s",
            project.project_id,
            state.iterations,
            state.executed,
        )
        yield AgentEvent.done(str(saved.message_id))
        return

    logger.warning(
        "Director iteration limit of %s reached for project %s",
        config.max_iterations,
        project.project_id,
    )
    yield AgentEvent.error(ITERATION_LIMIT_ERROR)


def _first_message(response: Any) -> Any:
    choices = getattr(response, "choices", None) if response is not None else None
    if not choices:
        return None
    return getattr(choices[0], "message", None)


def _log_payload(config: AgentConfig, label: str, payload: Any) -> None:
    if not config.log_payloads:
        return
    if isinstance(payload, str):
        message = payload
    else:
        try:
            message = json.dumps(payload, default=str, ensure_ascii=True)
        except TypeError:
            message = str(payload)
    if config.log_max_chars > 0 and len(message) > config.log_max_chars:
        message = f"{message[:config.log_max_chars]}... [truncated]"
    logger.info("Director %s: %s", label, message)

"""Chat and code actions routed through the model gateway."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Sequence

from .config import resolve_api_keys
from .llm.gateway import GenerationContext, ModelGateway, select_provider
from .logging import get_logger
from .models import ApiKeys, ChatMessage, CodeActionResult, ProjectState
from .prompting.builder import PromptBuilder
from .prompting.constants import CODE_ACTIONS

CODE_ACTION_SYSTEM_PROMPT = (
    "You are an expert software engineer. Answer precisely and keep the user's code style."
)

logger = get_logger("assistant")


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class Assistant:
    """Answers questions and transforms code using the preferred provider."""

    def __init__(
        self,
        gateway: ModelGateway | None = None,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        self.gateway = gateway or ModelGateway()
        self.prompt_builder = prompt_builder or PromptBuilder()

    def chat(
        self,
        message: str,
        conversation: Sequence[ChatMessage],
        state: ProjectState,
        api_keys: ApiKeys | None = None,
    ) -> ChatMessage:
        """Reply to ``message`` given the prior ``conversation`` and stored project state."""
        if not message.strip():
            raise ValueError("Message is required")
        provider, credential = select_provider(api_keys or resolve_api_keys(state.api_keys))
        system = self.prompt_builder.build_chat_system_prompt(
            state.project_path, state.codebase_index
        )
        reply = self.gateway.generate(
            message,
            list(conversation),
            provider,
            credential,
            GenerationContext(system=system, project_path=state.project_path),
        )
        return ChatMessage(role="assistant", content=reply, timestamp=_now())

    def run_code_action(
        self,
        action: str,
        file_path: str,
        content: str,
        language: str | None,
        api_keys: ApiKeys,
    ) -> CodeActionResult:
        if action not in CODE_ACTIONS:
            raise ValueError(f"Unsupported code action: {action}")
        if not file_path or not content:
            raise ValueError("File path and content are required")
        provider, credential = select_provider(api_keys)
        prompt = self.prompt_builder.build_code_action_prompt(
            action, file_path, content, language or "text"
        )
        logger.info("Running %s on %s", action, file_path)
        result = self.gateway.generate(
            prompt, [], provider, credential, GenerationContext(system=CODE_ACTION_SYSTEM_PROMPT)
        )
        return CodeActionResult(
            action=action,
            file_path=file_path,
            result=result,
            metadata={"provider": provider, "language": language or "text"},
        )


__all__ = ["Assistant"]

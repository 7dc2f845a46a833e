"""Azure OpenAI chat client with automatic function invocation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from openai import AsyncAzureOpenAI
from pydantic import ValidationError

from webapp.chat.functions import ChatFunction, serialize_result
from webapp.config import AzureOpenAISettings
from webapp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


@dataclass
class ChatResult:
    text: str
    function_calls: list[str] = field(default_factory=list)


class ChatClient:
    """Thin wrapper binding an OpenAI client to one deployment."""

    def __init__(self, openai_client: Any, deployment_name: str):
        self.openai_client = openai_client
        self.deployment_name = deployment_name

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> Any:
        kwargs: dict[str, Any] = {"model": self.deployment_name, "messages": messages}
        if tools:
            kwargs["tools"] = tools
        response = await self.openai_client.chat.completions.create(**kwargs)
        return response.choices[0].message

    async def close(self) -> None:
        await self.openai_client.close()


class FunctionInvokingChatClient:
    """Runs the tool-call loop on top of a :class:`ChatClient`.

    Each round trip sends the conversation plus tool definitions; when the
    model asks for tool calls, the matching functions run and their results
    are appended as ``tool`` messages. The loop ends when the model replies
    with text. After ``max_iterations`` round trips one last request is made
    without tools so the model has to answer.
    """

    def __init__(self, inner: ChatClient, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.inner = inner
        self.max_iterations = max_iterations

    async def complete(
        self,
        messages: Sequence[dict[str, Any]],
        functions: Sequence[ChatFunction] = (),
    ) -> ChatResult:
        conversation = list(messages)
        by_name = {f.name: f for f in functions}
        tools = [f.tool_definition() for f in functions]
        called: list[str] = []

        for _ in range(self.max_iterations):
            message = await self.inner.complete(conversation, tools or None)
            tool_calls = getattr(message, "tool_calls", None) or []
            if not tool_calls:
                return ChatResult(text=message.content or "", function_calls=called)

            conversation.append(message.model_dump(exclude_none=True))
            for call in tool_calls:
                called.append(call.function.name)
                content = await self._invoke(by_name, call.function.name, call.function.arguments)
                conversation.append({"role": "tool", "tool_call_id": call.id, "content": content})

        logger.warning("Function invocation stopped after %d iterations", self.max_iterations)
        message = await self.inner.complete(conversation, None)
        return ChatResult(text=message.content or "", function_calls=called)

    async def _invoke(self, by_name: dict[str, ChatFunction], name: str, arguments: str | None) -> str:
        function = by_name.get(name)
        if function is None:
            logger.warning("Model requested unknown function '%s'", name)
            return f'Error: Requested function "{name}" not found.'
        try:
            result = await function.invoke(arguments)
        except Exception as exc:
            logger.warning("Function '%s' failed: %s", name, exc)
            return f"Error: {exc}"
        logger.info("Invoked function '%s'", name)
        return serialize_result(result)

    async def close(self) -> None:
        await self.inner.close()


def build_chat_client(options: AzureOpenAISettings) -> FunctionInvokingChatClient:
    """Create the Azure OpenAI client for ``options`` wrapped for function calls."""
    openai_client = AsyncAzureOpenAI(
        azure_endpoint=str(options.endpoint),
        api_key=options.api_key.get_secret_value(),
        api_version=options.api_version,
    )
    return FunctionInvokingChatClient(ChatClient(openai_client, options.deployment_name))


class ChatClientProvider:
    """Builds the chat client on first resolution and returns it afterwards."""

    def __init__(self, options: AzureOpenAISettings | dict[str, Any], factory=build_chat_client):
        try:
            self.options = (
                options
                if isinstance(options, AzureOpenAISettings)
                else AzureOpenAISettings.model_validate(options)
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid AzureOpenAI configuration: {exc}") from exc
        self._factory = factory
        self._client: FunctionInvokingChatClient | None = None
        self._lock = threading.Lock()

    def get(self) -> FunctionInvokingChatClient:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    try:
                        self._client = self._factory(self.options)
                    except Exception as exc:
                        raise ConfigurationError(f"Could not create chat client: {exc}") from exc
                    logger.info(
                        "Chat client initialised for %s (deployment %s)",
                        self.options.endpoint,
                        self.options.deployment_name,
                    )
        return self._client

    @property
    def is_built(self) -> bool:
        return self._client is not None

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            logger.info("Chat client closed")

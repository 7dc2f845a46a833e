"""Shopping assistant — answers customer questions using catalog functions."""

from __future__ import annotations

import logging
from typing import Annotated

from openai import OpenAIError
from pydantic import Field

from webapp.catalog.schemas import CatalogItem
from webapp.catalog.service import CatalogService, product_image_url
from webapp.chat.client import ChatResult, FunctionInvokingChatClient
from webapp.chat.functions import ChatFunction
from webapp.chat.schemas import ChatMessage
from webapp.exceptions import ChatServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an AI customer service agent for the online retailer eShop. "
    "You NEVER respond about topics other than eShop. "
    "Your job is to answer customer questions about products in the eShop catalog. "
    "eShop primarily sells clothing and equipment related to outdoor activities like "
    "skiing and trekking. "
    "You try to be concise and only provide longer responses if necessary. "
    "If someone asks a question about anything other than eShop, its catalog, or their "
    "account, you refuse to answer, and you instead ask if there's a topic related to "
    "eShop you can assist with."
)

GREETING = "Hi! I'm the eShop Concierge. How can I help?"


class ChatService:
    def __init__(self, chat_client: FunctionInvokingChatClient, catalog: CatalogService):
        self.chat_client = chat_client
        self.catalog = catalog
        self.functions = [
            ChatFunction(self.search_catalog),
            ChatFunction(self.get_catalog_item),
        ]

    async def search_catalog(
        self,
        product_description: Annotated[str, Field(description="A description of the type of product to search for.")],
    ) -> list[dict]:
        """Searches the eShop catalog for a provided product description."""
        result = await self.catalog.search_catalog(product_description)
        return [_summarize(item) for item in result.data]

    async def get_catalog_item(
        self,
        item_id: Annotated[int, Field(description="The id of the catalog item.")],
    ) -> dict:
        """Gets the details of one catalog item by its id."""
        item = await self.catalog.get_catalog_item(item_id)
        return _summarize(item)

    async def reply(self, history: list[ChatMessage]) -> ChatResult:
        """Send ``history`` to the model and return the assistant's answer."""
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend({"role": m.role, "content": m.content} for m in history)
        try:
            result = await self.chat_client.complete(messages, self.functions)
        except OpenAIError as exc:
            logger.error("Azure OpenAI error in chat: %s", exc)
            raise ChatServiceError(f"Chat failed: {exc}") from exc
        if result.function_calls:
            logger.info("Chat reply used functions: %s", ", ".join(result.function_calls))
        return result


def _summarize(item: CatalogItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "price": item.price,
        "imageUrl": product_image_url(item.id),
    }

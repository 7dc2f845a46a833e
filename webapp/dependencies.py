"""FastAPI dependencies resolving the services held on ``app.state``."""

from fastapi import Depends, Request

from webapp.catalog.service import CatalogService
from webapp.chat.client import FunctionInvokingChatClient
from webapp.chat.service import ChatService


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


def get_chat_client(request: Request) -> FunctionInvokingChatClient:
    return request.app.state.chat_client_provider.get()


def get_chat_service(
    chat_client: FunctionInvokingChatClient = Depends(get_chat_client),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ChatService:
    return ChatService(chat_client, catalog)

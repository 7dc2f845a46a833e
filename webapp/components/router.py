"""Server-rendered pages."""

from __future__ import annotations

import logging
import math

from fastapi import APIRouter, Depends, Form, Query, Request
from pydantic import ValidationError

from webapp.catalog.service import CatalogService, product_image_url
from webapp.chat.schemas import ChatMessage, history_adapter
from webapp.chat.service import GREETING, ChatService
from webapp.components.templates import render_error_page, templates
from webapp.dependencies import get_catalog_service, get_chat_service

logger = logging.getLogger(__name__)

PAGE_SIZE = 9

router = APIRouter(include_in_schema=False)


@router.get("/")
async def catalog_page(
    request: Request,
    page: int = Query(1, ge=1),
    brand_id: int | None = Query(None, alias="brand"),
    type_id: int | None = Query(None, alias="type"),
    catalog: CatalogService = Depends(get_catalog_service),
):
    result = await catalog.get_catalog_items(page - 1, PAGE_SIZE, brand_id=brand_id, type_id=type_id)
    brands = await catalog.get_brands()
    types = await catalog.get_types()
    return templates.TemplateResponse(
        request,
        "catalog.html",
        {
            "items": result.data,
            "brands": brands,
            "types": types,
            "selected_brand": brand_id,
            "selected_type": type_id,
            "page": page,
            "page_count": max(1, math.ceil(result.count / PAGE_SIZE)),
            "image_url": product_image_url,
        },
    )


@router.get("/item/{item_id}")
async def item_page(
    request: Request,
    item_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
):
    item = await catalog.get_catalog_item(item_id)
    return templates.TemplateResponse(
        request,
        "item.html",
        {"item": item, "image_url": product_image_url(item.id)},
    )


def _render_chat(request: Request, history: list[ChatMessage]):
    return templates.TemplateResponse(
        request,
        "chat.html",
        {
            "greeting": GREETING,
            "messages": history,
            "history_json": history_adapter.dump_json(history).decode("utf-8"),
        },
    )


@router.get("/chat")
def chat_page(request: Request):
    return _render_chat(request, [])


@router.post("/chat")
async def chat_submit(
    request: Request,
    message: str = Form(""),
    history: str = Form("[]"),
    service: ChatService = Depends(get_chat_service),
):
    try:
        conversation = history_adapter.validate_json(history)
    except ValidationError:
        logger.warning("Discarding malformed chat history")
        conversation = []

    message = message.strip()
    if not message:
        return _render_chat(request, conversation)

    conversation.append(ChatMessage(role="user", content=message))
    result = await service.reply(conversation)
    if result.text:
        conversation.append(ChatMessage(role="assistant", content=result.text))
    return _render_chat(request, conversation)


@router.get("/Error")
def error_page(request: Request):
    return render_error_page(request, status_code=200)

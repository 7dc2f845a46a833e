"""Chat API routes."""

from fastapi import APIRouter, Depends

from webapp.chat.schemas import ChatRequest, ChatResponse
from webapp.chat.service import ChatService
from webapp.dependencies import get_chat_service

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def chat(body: ChatRequest, service: ChatService = Depends(get_chat_service)):
    result = await service.reply(body.messages)
    return ChatResponse(reply=result.text, function_calls=result.function_calls)

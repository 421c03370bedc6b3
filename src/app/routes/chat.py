"""Chat endpoints, mounted under ``/api/chat``."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.agents.chat_agent.chat_service import ChatService

from ..dependencies import get_chat


router = APIRouter(prefix='/chat', tags=['chat'])

Chat = Annotated[ChatService, Depends(get_chat)]


class ChatRequest(BaseModel):
    question: str | None = None
    city: str | None = None
    sessionId: str | None = None


@router.post('')
async def chat(body: ChatRequest, service: Chat):
    record = await service.ask(body.question or '', city=body.city, session_id=body.sessionId)
    return {'message': 'Chat processed successfully', 'data': record.to_dict()}


@router.get('/history')
async def chat_history(service: Chat, sessionId: Annotated[str | None, Query()] = None):
    records = await service.history(sessionId or '')
    return {
        'message': 'Chat history retrieved successfully',
        'data': [record.to_dict() for record in records],
    }

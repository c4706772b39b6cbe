"""
Chat-related API routes.
Handles conversation management and RAG question answering.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from . import http_error
from ..dependencies import get_conversation_service, get_rag_service
from ..exceptions import DocQAError
from ..logging_config import logger
from ..schemas import AnswerResult, AskBody, ConversationInfo, QuestionBody, ThreadMessage
from ..services.conversation_service import ConversationService
from ..services.rag_service import RagService

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/ask_stream")
async def ask_rag_stream(payload: AskBody, rag: RagService = Depends(get_rag_service)):
    """
    Streaming RAG endpoint using Server-Sent Events (SSE).

    Workflow:
    1. Create/retrieve conversation
    2. Store user message under the resolved parent
    3. Retrieve relevant passages
    4. Build prompt and stream LLM tokens
    5. Store assistant message

    Failures after the stream has started arrive as an "error" event.
    """
    return StreamingResponse(
        rag.handle_rag_query(payload),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/ask", response_model=AnswerResult)
async def ask(payload: QuestionBody, rag: RagService = Depends(get_rag_service)):
    """Answer a question across all documents without touching conversations."""
    try:
        return await rag.answer(
            payload.question,
            top_k=payload.top_k,
            model=payload.model,
            embedding_model=payload.embedding_model,
        )
    except DocQAError as e:
        raise http_error(e)
    except Exception as e:
        logger.error("Error answering question", exc_info=e, question=payload.question)
        raise HTTPException(status_code=500, detail="Error processing query")


@router.get("/conversations", response_model=List[ConversationInfo])
async def list_conversations(conversations: ConversationService = Depends(get_conversation_service)):
    """All conversations, most recently active first."""
    return conversations.list_conversations()


@router.get("/conversations/{conversation_id}", response_model=List[ThreadMessage])
async def get_active_thread(
    conversation_id: int,
    conversations: ConversationService = Depends(get_conversation_service),
):
    """
    Retrieve the active thread of a conversation.
    Each message carries its sibling count and 1-based sibling index.
    """
    try:
        return conversations.active_thread(conversation_id)
    except DocQAError as e:
        raise http_error(e)


@router.get("/conversations/{conversation_id}/thread/{message_id}", response_model=List[ThreadMessage])
async def get_thread_from(
    conversation_id: int,
    message_id: int,
    conversations: ConversationService = Depends(get_conversation_service),
):
    """Thread starting at a specific message, used when switching to another branch."""
    try:
        return conversations.thread_from(conversation_id, message_id)
    except DocQAError as e:
        raise http_error(e)


@router.get(
    "/conversations/{conversation_id}/messages/{message_id}/siblings",
    response_model=List[ThreadMessage],
)
async def get_siblings(
    conversation_id: int,
    message_id: int,
    conversations: ConversationService = Depends(get_conversation_service),
):
    try:
        return conversations.siblings(conversation_id, message_id)
    except DocQAError as e:
        raise http_error(e)


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: int,
    conversations: ConversationService = Depends(get_conversation_service),
):
    """Delete a conversation and all its messages."""
    try:
        conversations.delete_conversation(conversation_id)
    except DocQAError as e:
        raise http_error(e)
    return {"ok": True, "deleted": conversation_id}

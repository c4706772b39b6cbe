"""
RAG (Retrieval-Augmented Generation) service.
Handles the question lifecycle: conversation bookkeeping, retrieval, prompt
construction and streaming generation.
"""
import asyncio
import time
from typing import Any, AsyncGenerator, Dict, List, Optional

from ..exceptions import DocQAError
from ..generation import TRUNCATED_AT_LIMIT
from ..logging_config import logger
from ..models import MessageRole
from ..prompting import (
    HISTORY_MAX_MESSAGES,
    OUT_OF_CONTEXT_MSG,
    TRUNCATION_NOTICE,
    analyze_question,
    build_history_aware_question,
    build_prompt,
    cleanup_response,
    estimate_max_tokens,
    title_from_question,
)
from ..retrieval import HybridRetriever
from ..schemas import AnswerResult, AskBody
from ..utils.helpers import format_sse
from .conversation_service import ConversationService
from .model_service import GeneratorRegistry

Event = Dict[str, Any]


class RagService:

    def __init__(
        self,
        conversations: ConversationService,
        retriever: HybridRetriever,
        generators: GeneratorRegistry,
    ):
        self.conversations = conversations
        self.retriever = retriever
        self.generators = generators

    async def stream_answer(
        self,
        question: str,
        conversation_id: Optional[int] = None,
        parent_id: Optional[int] = None,
        is_edit: bool = False,
        top_k: int = 5,
        document_id: Optional[int] = None,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
    ) -> AsyncGenerator[Event, None]:
        """
        Answer a question inside a conversation, yielding events as they happen.

        Event order: ``conversation_id`` (only when one was created),
        ``user_message_saved``, any number of ``token``, then exactly one of
        ``done`` or ``error``. The assistant message is persisted only on ``done``.
        """
        start_time = time.time()
        question = question.strip()
        user_ref = None

        try:
            generator = self.generators.get(model)

            # 1. Ensure conversation exists
            if conversation_id is None:
                conversation = self.conversations.create_conversation(title_from_question(question))
                conversation_id = conversation.id
                yield {"type": "conversation_id", "conversation_id": conversation_id}
            else:
                self.conversations.get_conversation(conversation_id)

            # 2. Attach the user message
            parent_id = self.conversations.resolve_parent_id(conversation_id, parent_id, is_edit)
            user_ref = self.conversations.add_message(conversation_id, MessageRole.USER, question, parent_id)
            yield {
                "type": "user_message_saved",
                "id": user_ref.id,
                "parent_id": user_ref.parent_id,
                "sibling_count": user_ref.sibling_count,
                "sibling_index": user_ref.sibling_index,
            }

            # 3. Plan, history and retrieval
            plan = analyze_question(question, top_k)
            history = self.conversations.ancestors(parent_id, HISTORY_MAX_MESSAGES)
            query = build_history_aware_question(question, history)
            logger.info("Processing query", question=question, conversation_id=conversation_id,
                        style=plan.style.value, question_type=plan.question_type.value,
                        top_k=plan.top_k, history_turns=len(history), provider=generator.provider,
                        model=generator.model)

            passages = await asyncio.to_thread(
                self.retriever.retrieve, question, plan.top_k, document_id, embedding_model
            )

            # 4. Generate
            parts: List[str] = []
            if not passages:
                logger.info("No relevant passages found", conversation_id=conversation_id)
                parts.append(OUT_OF_CONTEXT_MSG)
                yield {"type": "token", "text": OUT_OF_CONTEXT_MSG}
            else:
                prompt = build_prompt(query, passages, plan.style, plan.question_type)
                max_tokens = estimate_max_tokens(question, plan.question_type, plan.style)
                done_reason = None
                async for chunk in generator.stream(prompt, max_tokens):
                    if chunk.text:
                        parts.append(chunk.text)
                        yield {"type": "token", "text": chunk.text}
                    if chunk.done:
                        done_reason = chunk.done_reason
                if done_reason == TRUNCATED_AT_LIMIT:
                    logger.warning("Response truncated at token limit", max_tokens=max_tokens)
                    parts.append(TRUNCATION_NOTICE)
                    yield {"type": "token", "text": TRUNCATION_NOTICE}

            # 5. Persist the answer
            assistant_ref = self.conversations.add_message(
                conversation_id,
                MessageRole.ASSISTANT,
                "".join(parts).strip(),
                user_ref.id,
                touch_conversation=True,
            )
        except asyncio.CancelledError:
            logger.info("Query cancelled by client", conversation_id=conversation_id)
            raise
        except DocQAError as e:
            logger.warning("Query failed", conversation_id=conversation_id, error=str(e), code=e.code)
            yield {"type": "error", "message": str(e), "code": e.code}
            return
        except Exception as e:
            logger.error("Unexpected error while answering", conversation_id=conversation_id, exc_info=e)
            yield {"type": "error", "message": "Error processing query", "code": "internal_error"}
            return

        elapsed_ms = round((time.time() - start_time) * 1000, 2)
        logger.info("Query completed", conversation_id=conversation_id,
                    assistant_message_id=assistant_ref.id, time_ms=elapsed_ms)
        yield {
            "type": "done",
            "assistant_message_id": assistant_ref.id,
            "parent_id": assistant_ref.parent_id,
            "sibling_count": assistant_ref.sibling_count,
            "sibling_index": assistant_ref.sibling_index,
        }

    async def handle_rag_query(self, payload: AskBody) -> AsyncGenerator[str, None]:
        """
        SSE-formatted wrapper around ``stream_answer`` for the streaming endpoint.
        """
        async for event in self.stream_answer(
            payload.question,
            conversation_id=payload.conversation_id,
            parent_id=payload.parent_id,
            is_edit=payload.is_edit,
            top_k=payload.top_k,
            document_id=payload.document_id,
            model=payload.model,
            embedding_model=payload.embedding_model,
        ):
            yield format_sse(event)

    async def answer(
        self,
        question: str,
        top_k: int = 5,
        document_id: Optional[int] = None,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
    ) -> AnswerResult:
        """
        Blocking question answering without conversation state.

        Raises:
            NoDocumentsIngestedError: nothing indexed for the scope
            GenerationError: backend failed
        """
        question = question.strip()
        generator = self.generators.get(model)
        plan = analyze_question(question, top_k)

        passages = await asyncio.to_thread(
            self.retriever.retrieve, question, plan.top_k, document_id, embedding_model
        )
        if not passages:
            return AnswerResult(
                question=question,
                answer=OUT_OF_CONTEXT_MSG,
                response_style=plan.style.value,
                question_type=plan.question_type.value,
            )

        prompt = build_prompt(question, passages, plan.style, plan.question_type)
        max_tokens = estimate_max_tokens(question, plan.question_type, plan.style)
        result = await generator.generate(prompt, max_tokens)

        text = cleanup_response(result.text)
        if result.truncated:
            text += TRUNCATION_NOTICE
        logger.info("Answered question", question_type=plan.question_type.value,
                    passages=len(passages), truncated=result.truncated)
        return AnswerResult(
            question=question,
            answer=text,
            response_style=plan.style.value,
            question_type=plan.question_type.value,
            passages=passages,
            truncated=result.truncated,
        )

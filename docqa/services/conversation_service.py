"""
Conversation management service.

Messages are stored as a parent-pointer tree per conversation so that editing a
question creates a new sibling instead of overwriting history. The visible
conversation is reconstructed on demand by walking forward from a root and
always following the most recently created child.
"""
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import ConversationNotFoundError, MessageNotFoundError, ParentMismatchError
from ..logging_config import logger
from ..models import ChatMessage, Conversation, MessageRole, utcnow
from ..schemas import ConversationInfo, MessageRef, ThreadMessage

SiblingKey = Tuple[Optional[int], MessageRole]


class ConversationService:

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ---- conversations ----

    def create_conversation(self, title: str) -> ConversationInfo:
        """
        Create a new conversation.

        Returns:
            The created conversation
        """
        with self._session_factory() as db, db.begin():
            conversation = Conversation(title=title)
            db.add(conversation)
            db.flush()
            info = ConversationInfo.model_validate(conversation)
        logger.info("Created new conversation", conversation_id=info.id)
        return info

    def get_conversation(self, conversation_id: int) -> ConversationInfo:
        with self._session_factory() as db:
            return ConversationInfo.model_validate(self._require_conversation(db, conversation_id))

    def list_conversations(self) -> List[ConversationInfo]:
        """All conversations, most recently updated first."""
        with self._session_factory() as db:
            rows = db.scalars(
                select(Conversation).order_by(Conversation.updated_at.desc(), Conversation.id.desc())
            ).all()
            return [ConversationInfo.model_validate(c) for c in rows]

    def delete_conversation(self, conversation_id: int) -> None:
        """
        Delete a conversation and all its messages.

        Raises:
            ConversationNotFoundError: unknown conversation id
        """
        with self._session_factory() as db, db.begin():
            self._require_conversation(db, conversation_id)
            db.execute(delete(ChatMessage).where(ChatMessage.conversation_id == conversation_id))
            db.execute(delete(Conversation).where(Conversation.id == conversation_id))
        logger.info("Deleted conversation", conversation_id=conversation_id)

    # ---- writes ----

    def add_message(
        self,
        conversation_id: int,
        role: MessageRole,
        content: str,
        parent_id: Optional[int] = None,
        touch_conversation: bool = False,
    ) -> MessageRef:
        """
        Persist a message under ``parent_id`` (None for a root).

        Args:
            touch_conversation: bump the conversation's updated_at in the same transaction

        Raises:
            ConversationNotFoundError: unknown conversation id
            ParentMismatchError: parent is not a message of this conversation
        """
        with self._session_factory() as db, db.begin():
            conversation = self._require_conversation(db, conversation_id)
            if parent_id is not None and self._find_message(db, conversation_id, parent_id) is None:
                raise ParentMismatchError(parent_id, conversation_id)

            message = ChatMessage(
                conversation_id=conversation_id,
                role=role,
                content=content,
                parent_id=parent_id,
            )
            db.add(message)
            if touch_conversation:
                conversation.updated_at = utcnow()
            db.flush()

            siblings = self._query_siblings(db, conversation_id, parent_id, role)
            ref = MessageRef(
                id=message.id,
                parent_id=parent_id,
                sibling_count=len(siblings),
                sibling_index=_position(siblings, message.id),
            )
        logger.debug("Stored message", conversation_id=conversation_id, role=role.value,
                     message_id=ref.id, parent_id=parent_id)
        return ref

    def resolve_parent_id(self, conversation_id: int, parent_id: Optional[int], is_edit: bool) -> Optional[int]:
        """
        Decide where a new user message attaches.

        An explicit parent must belong to the conversation. Without one, a normal
        question continues the active thread and an edit starts a new root.
        """
        if parent_id is not None:
            with self._session_factory() as db:
                if self._find_message(db, conversation_id, parent_id) is None:
                    raise ParentMismatchError(parent_id, conversation_id)
            return parent_id
        if is_edit:
            return None
        thread = self.active_thread(conversation_id)
        return thread[-1].id if thread else None

    # ---- reads ----

    def active_thread(self, conversation_id: int) -> List[ThreadMessage]:
        """
        The thread that starts at the most recent root user message and
        follows the most recent child at every fork.

        Raises:
            ConversationNotFoundError: unknown conversation id
        """
        with self._session_factory() as db:
            self._require_conversation(db, conversation_id)
            cache: Dict[SiblingKey, List[ChatMessage]] = {}
            roots = self._siblings_cached(db, conversation_id, None, MessageRole.USER, cache)
            if not roots:
                return []
            return self._walk_forward(db, conversation_id, roots[-1], cache)

    def thread_from(self, conversation_id: int, message_id: int) -> List[ThreadMessage]:
        """
        Same forward walk as ``active_thread`` but starting at ``message_id``.

        Raises:
            MessageNotFoundError: the message is not part of this conversation
        """
        with self._session_factory() as db:
            start = self._require_message(db, conversation_id, message_id)
            return self._walk_forward(db, conversation_id, start, {})

    def siblings(self, conversation_id: int, message_id: int) -> List[ThreadMessage]:
        """All versions of the message's turn, oldest first, with positions."""
        with self._session_factory() as db:
            target = self._require_message(db, conversation_id, message_id)
            siblings = self._query_siblings(db, conversation_id, target.parent_id, target.role)
            count = len(siblings)
            return [_to_thread_message(m, count, i) for i, m in enumerate(siblings, start=1)]

    def ancestors(self, message_id: Optional[int], limit: int) -> List[Tuple[str, str]]:
        """
        Up to ``limit`` messages walking up from ``message_id`` (inclusive),
        returned oldest first as (role, content) pairs.
        """
        collected: List[Tuple[str, str]] = []
        current_id = message_id
        with self._session_factory() as db:
            while current_id is not None and len(collected) < limit:
                message = db.get(ChatMessage, current_id)
                if message is None:
                    break
                collected.append((message.role.value, message.content))
                current_id = message.parent_id
        collected.reverse()
        return collected

    # ---- internals ----

    def _walk_forward(
        self,
        db: Session,
        conversation_id: int,
        start: ChatMessage,
        cache: Dict[SiblingKey, List[ChatMessage]],
    ) -> List[ThreadMessage]:
        thread: List[ThreadMessage] = []
        current: Optional[ChatMessage] = start
        while current is not None:
            siblings = self._siblings_cached(db, conversation_id, current.parent_id, current.role, cache)
            thread.append(_to_thread_message(current, len(siblings), _position(siblings, current.id)))

            children = self._siblings_cached(db, conversation_id, current.id, current.role.opposite, cache)
            current = children[-1] if children else None
        return thread

    def _siblings_cached(
        self,
        db: Session,
        conversation_id: int,
        parent_id: Optional[int],
        role: MessageRole,
        cache: Dict[SiblingKey, List[ChatMessage]],
    ) -> List[ChatMessage]:
        key = (parent_id, role)
        if key not in cache:
            cache[key] = self._query_siblings(db, conversation_id, parent_id, role)
        return cache[key]

    @staticmethod
    def _query_siblings(
        db: Session, conversation_id: int, parent_id: Optional[int], role: MessageRole
    ) -> List[ChatMessage]:
        stmt = select(ChatMessage).where(
            ChatMessage.conversation_id == conversation_id,
            ChatMessage.role == role,
        )
        if parent_id is None:
            stmt = stmt.where(ChatMessage.parent_id.is_(None))
        else:
            stmt = stmt.where(ChatMessage.parent_id == parent_id)
        stmt = stmt.order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        return list(db.scalars(stmt).all())

    @staticmethod
    def _require_conversation(db: Session, conversation_id: int) -> Conversation:
        conversation = db.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    @staticmethod
    def _find_message(db: Session, conversation_id: int, message_id: int) -> Optional[ChatMessage]:
        return db.scalars(
            select(ChatMessage).where(
                ChatMessage.id == message_id,
                ChatMessage.conversation_id == conversation_id,
            )
        ).first()

    def _require_message(self, db: Session, conversation_id: int, message_id: int) -> ChatMessage:
        message = self._find_message(db, conversation_id, message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message


def _position(siblings: List[ChatMessage], message_id: int) -> int:
    for i, sibling in enumerate(siblings, start=1):
        if sibling.id == message_id:
            return i
    return 1


def _to_thread_message(message: ChatMessage, sibling_count: int, sibling_index: int) -> ThreadMessage:
    return ThreadMessage(
        id=message.id,
        role=message.role.value,
        content=message.content,
        created_at=message.created_at,
        parent_id=message.parent_id,
        sibling_count=sibling_count,
        sibling_index=sibling_index,
    )

"""Test the branching conversation tree"""
import pytest

from docqa.exceptions import ConversationNotFoundError, MessageNotFoundError, ParentMismatchError
from docqa.models import ChatMessage, MessageRole

USER, ASSISTANT = MessageRole.USER, MessageRole.ASSISTANT


@pytest.fixture
def conversation_id(conversations):
    return conversations.create_conversation("Leave policy").id


def _linear_thread(conversations, conversation_id):
    u1 = conversations.add_message(conversation_id, USER, "How many leave days?")
    a1 = conversations.add_message(conversation_id, ASSISTANT, "Twenty.", u1.id)
    u2 = conversations.add_message(conversation_id, USER, "Do they roll over?", a1.id)
    a2 = conversations.add_message(conversation_id, ASSISTANT, "Until March.", u2.id)
    return u1, a1, u2, a2


def test_active_thread_follows_linear_chain(conversations, conversation_id):
    u1, a1, u2, a2 = _linear_thread(conversations, conversation_id)

    thread = conversations.active_thread(conversation_id)

    assert [m.id for m in thread] == [u1.id, a1.id, u2.id, a2.id]
    assert [m.role for m in thread] == ["user", "assistant", "user", "assistant"]
    assert all((m.sibling_count, m.sibling_index) == (1, 1) for m in thread)


def test_empty_conversation_has_empty_thread(conversations, conversation_id):
    assert conversations.active_thread(conversation_id) == []


def test_root_siblings_are_indexed_in_creation_order(conversations, conversation_id):
    u1a = conversations.add_message(conversation_id, USER, "First wording")
    u1b = conversations.add_message(conversation_id, USER, "Second wording")

    siblings = conversations.siblings(conversation_id, u1a.id)

    assert [m.id for m in siblings] == [u1a.id, u1b.id]
    assert [(m.sibling_index, m.sibling_count) for m in siblings] == [(1, 2), (2, 2)]
    assert (u1b.sibling_index, u1b.sibling_count) == (2, 2)


def test_edit_creates_branch_without_touching_old_reply(conversations, conversation_id, session_factory):
    u1a = conversations.add_message(conversation_id, USER, "Original question")
    a1 = conversations.add_message(conversation_id, ASSISTANT, "Original answer", u1a.id)
    u1c = conversations.add_message(conversation_id, USER, "Edited question")

    branch = conversations.thread_from(conversation_id, u1c.id)
    assert [m.id for m in branch] == [u1c.id]

    old = conversations.thread_from(conversation_id, u1a.id)
    assert [m.id for m in old] == [u1a.id, a1.id]
    assert old[0].sibling_index == 1 and old[0].sibling_count == 2

    with session_factory() as db:
        reply = db.get(ChatMessage, a1.id)
        assert reply.parent_id == u1a.id
        assert reply.content == "Original answer"


def test_active_thread_starts_at_latest_root(conversations, conversation_id):
    conversations.add_message(conversation_id, USER, "Old root")
    newer = conversations.add_message(conversation_id, USER, "New root")

    thread = conversations.active_thread(conversation_id)

    assert [m.id for m in thread] == [newer.id]
    assert thread[0].sibling_index == 2


def test_active_thread_follows_latest_child(conversations, conversation_id):
    u1, a1, _, _ = _linear_thread(conversations, conversation_id)
    regenerated = conversations.add_message(conversation_id, USER, "Do they expire?", a1.id)

    thread = conversations.active_thread(conversation_id)

    assert [m.id for m in thread] == [u1.id, a1.id, regenerated.id]
    assert (thread[-1].sibling_index, thread[-1].sibling_count) == (2, 2)


def test_orphaned_user_message_is_thread_tail(conversations, conversation_id):
    u1, a1, _, _ = _linear_thread(conversations, conversation_id)
    dangling = conversations.add_message(conversation_id, USER, "Unanswered", a1.id)

    thread = conversations.active_thread(conversation_id)

    assert thread[-1].id == dangling.id
    assert thread[-1].role == "user"


def test_resolve_parent_defaults_to_thread_tail(conversations, conversation_id):
    _, _, _, a2 = _linear_thread(conversations, conversation_id)
    assert conversations.resolve_parent_id(conversation_id, None, is_edit=False) == a2.id
    assert conversations.resolve_parent_id(conversation_id, None, is_edit=True) is None


def test_resolve_parent_on_empty_conversation(conversations, conversation_id):
    assert conversations.resolve_parent_id(conversation_id, None, is_edit=False) is None


def test_parent_from_other_conversation_is_rejected(conversations, conversation_id):
    other = conversations.create_conversation("Other").id
    foreign = conversations.add_message(other, USER, "Elsewhere")

    with pytest.raises(ParentMismatchError):
        conversations.resolve_parent_id(conversation_id, foreign.id, is_edit=False)
    with pytest.raises(ParentMismatchError):
        conversations.add_message(conversation_id, USER, "Hi", foreign.id)


def test_unknown_ids_fail_fast(conversations, conversation_id):
    with pytest.raises(ConversationNotFoundError):
        conversations.active_thread(9999)
    with pytest.raises(ConversationNotFoundError):
        conversations.add_message(9999, USER, "Hi")
    with pytest.raises(MessageNotFoundError):
        conversations.thread_from(conversation_id, 9999)
    with pytest.raises(MessageNotFoundError):
        conversations.siblings(conversation_id, 9999)


def test_message_lookup_is_conversation_scoped(conversations, conversation_id):
    other = conversations.create_conversation("Other").id
    foreign = conversations.add_message(other, USER, "Elsewhere")
    with pytest.raises(MessageNotFoundError):
        conversations.thread_from(conversation_id, foreign.id)


def test_ancestors_are_chronological_and_bounded(conversations, conversation_id):
    _, _, u2, a2 = _linear_thread(conversations, conversation_id)

    history = conversations.ancestors(a2.id, limit=3)

    assert history == [
        ("assistant", "Twenty."),
        ("user", "Do they roll over?"),
        ("assistant", "Until March."),
    ]
    assert conversations.ancestors(None, limit=4) == []


def test_delete_conversation_removes_messages(conversations, conversation_id, session_factory):
    _linear_thread(conversations, conversation_id)

    conversations.delete_conversation(conversation_id)

    with pytest.raises(ConversationNotFoundError):
        conversations.get_conversation(conversation_id)
    with session_factory() as db:
        assert db.query(ChatMessage).count() == 0
    with pytest.raises(ConversationNotFoundError):
        conversations.delete_conversation(conversation_id)


def test_list_conversations_most_recent_first(conversations):
    first = conversations.create_conversation("First").id
    second = conversations.create_conversation("Second").id
    message = conversations.add_message(first, USER, "Bump")
    conversations.add_message(first, ASSISTANT, "Reply", message.id, touch_conversation=True)

    assert [c.id for c in conversations.list_conversations()] == [first, second]

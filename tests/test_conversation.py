import pytest

from gather_stream.domain.models.conversation import ConversationHistory, ConversationTurn, MessageRole
from gather_stream.domain.models.tool import PendingToolCall, ToolCall, ToolResult


def test_tool_round_appends_paired_turns():
    history = ConversationHistory(system_prompt="sys")
    history.add_user_message("What is the passport fee?")
    call = ToolCall(id="toolu_1", name="web_search", input={"query": "passport fee"})
    history.add_tool_round("Let me check.", [call], [ToolResult(tool_call_id="toolu_1", text="$130")])

    messages = history.get_messages_for_api()
    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert messages[1]["content"] == [
        {"type": "text", "text": "Let me check."},
        {"type": "tool_use", "id": "toolu_1", "name": "web_search", "input": {"query": "passport fee"}},
    ]
    assert messages[2]["content"] == [{"type": "tool_result", "tool_use_id": "toolu_1", "content": "$130"}]
    assert history.ready_for_model()


def test_whitespace_only_text_is_left_out_of_tool_turn():
    history = ConversationHistory()
    history.add_user_message("q")
    call = ToolCall(id="toolu_1", name="web_search", input={"query": "q"})
    history.add_tool_round("\n\n", [call], [ToolResult(tool_call_id="toolu_1", text="r")])
    assert history.get_messages_for_api()[1]["content"] == [call.to_content_block()]


def test_missing_tool_result_is_rejected():
    history = ConversationHistory()
    history.add_user_message("q")
    calls = [ToolCall(id="a", name="web_search", input={}), ToolCall(id="b", name="web_search", input={})]
    with pytest.raises(ValueError):
        history.add_tool_round("", calls, [ToolResult(tool_call_id="a", text="x")])


def test_orphan_tool_result_and_seeded_turns_are_validated():
    history = ConversationHistory()
    orphan = ConversationTurn(role=MessageRole.USER, content=[{"type": "tool_result", "tool_use_id": "z", "content": ""}])
    with pytest.raises(ValueError):
        history.append(orphan)
    with pytest.raises(ValueError):
        ConversationHistory(turns=[
            ConversationTurn(role=MessageRole.ASSISTANT, content=[{"type": "tool_use", "id": "q", "name": "n", "input": {}}]),
            ConversationTurn(role=MessageRole.ASSISTANT, content="hi"),
        ])


def test_history_is_append_only():
    history = ConversationHistory()
    history.add_user_message("q")
    with pytest.raises(ValueError):
        history.clear()
    assert len(history) == 1


def test_from_dict_defaults_unknown_role_to_user():
    assert ConversationTurn.from_dict({"role": "system", "content": "x"}).role is MessageRole.USER


def test_pending_tool_call_parsing():
    pending = PendingToolCall(id="t", name="web_search")
    pending.append('{"query": ')
    pending.append('"dmv"}')
    assert pending.complete() == ToolCall(id="t", name="web_search", input={"query": "dmv"})
    assert PendingToolCall(id="t", name="n").complete().input == {}
    assert PendingToolCall(id="t", name="n", input_buffer="[1]").complete() is None
    assert PendingToolCall(id="t", name="n", input_buffer='{"q":').complete() is None

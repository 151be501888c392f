from agent.director.history import ChatHistoryStore
from agent.director.types import ConversationMessage, ToolCallRequest
from operators.project_operator import create_project


def _tool_round(store, project_id, call_id, name="listAssets"):
    store.append(
        project_id,
        ConversationMessage(
            role="assistant",
            content="",
            tool_calls=[ToolCallRequest(id=call_id, name=name, arguments="{}")],
        ),
    )
    store.append(
        project_id,
        ConversationMessage(
            role="tool",
            content='{"success": true, "data": {}}',
            tool_call_id=call_id,
            name=name,
        ),
    )


def test_append_assigns_increasing_positions(db, project):
    store = ChatHistoryStore(db)

    first = store.append(project.project_id, ConversationMessage(role="user", content="hi"))
    second = store.append(project.project_id, ConversationMessage(role="assistant", content="hey"))

    assert (first.position, second.position) == (0, 1)


def test_positions_are_per_project(db, project, user):
    other = create_project(user.user_id, "Second", db)
    store = ChatHistoryStore(db)
    store.append(project.project_id, ConversationMessage(role="user", content="a"))

    row = store.append(other.project_id, ConversationMessage(role="user", content="b"))

    assert row.position == 0


def test_load_context_replays_in_causal_order(db, project):
    store = ChatHistoryStore(db)
    store.append(project.project_id, ConversationMessage(role="user", content="show assets"))
    _tool_round(store, project.project_id, "call_1")
    store.append(project.project_id, ConversationMessage(role="assistant", content="none yet"))

    context = [m.to_openai() for m in store.load_context(project.project_id)]

    assert [m["role"] for m in context] == ["user", "assistant", "tool", "assistant"]
    assert context[1]["tool_calls"][0]["function"]["name"] == "listAssets"
    assert context[2]["tool_call_id"] == "call_1"
    assert context[2]["name"] == "listAssets"


def test_load_context_window_never_starts_with_orphan_tool_result(db, project):
    store = ChatHistoryStore(db, limit=3)
    store.append(project.project_id, ConversationMessage(role="user", content="go"))
    _tool_round(store, project.project_id, "call_1")
    store.append(project.project_id, ConversationMessage(role="assistant", content="done"))
    store.append(project.project_id, ConversationMessage(role="user", content="thanks"))

    # Window holds [tool(call_1), assistant, user]; the tool result lost its call
    context = store.load_context(project.project_id)

    assert [m.role for m in context] == ["assistant", "user"]


def test_load_context_strips_unanswered_tool_calls(db, project):
    store = ChatHistoryStore(db)
    store.append(project.project_id, ConversationMessage(role="user", content="go"))
    store.append(
        project.project_id,
        ConversationMessage(
            role="assistant",
            content="",
            tool_calls=[
                ToolCallRequest(id="call_1", name="listAssets"),
                ToolCallRequest(id="call_2", name="getProjectState"),
            ],
        ),
    )
    store.append(
        project.project_id,
        ConversationMessage(role="tool", content="{}", tool_call_id="call_1", name="listAssets"),
    )

    context = store.load_context(project.project_id)

    assert [call.id for call in context[1].tool_calls] == ["call_1"]
    assert len(context) == 3


def test_list_visible_hides_tool_messages(db, project):
    store = ChatHistoryStore(db)
    store.append(project.project_id, ConversationMessage(role="user", content="go"))
    _tool_round(store, project.project_id, "call_1")
    store.append(project.project_id, ConversationMessage(role="assistant", content="done"))

    visible = store.list_visible(project.project_id)

    assert [m["role"] for m in visible] == ["user", "assistant", "assistant"]
    assert visible[1]["toolCalls"][0]["id"] == "call_1"
    assert visible[2]["toolCalls"] is None


def test_clear_removes_only_that_project(db, project, user):
    other = create_project(user.user_id, "Second", db)
    store = ChatHistoryStore(db)
    store.append(project.project_id, ConversationMessage(role="user", content="a"))
    store.append(project.project_id, ConversationMessage(role="assistant", content="b"))
    store.append(other.project_id, ConversationMessage(role="user", content="c"))

    assert store.clear(project.project_id) == 2
    assert store.load_context(project.project_id) == []
    assert len(store.load_context(other.project_id)) == 1

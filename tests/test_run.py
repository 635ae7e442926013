from agent_engine.config import Settings
from agent_engine.models import AssistantMessage, SystemMessage, ToolMessage, UserMessage
from agent_engine.run import _fit_history, build_agent
from agent_engine.runner import AgentRunner
from agent_engine.tool_registry import ToolRegistry
from agent_engine.tools import register_builtin_tools

from conftest import completion, scripted_model, tool_call


def _builtin_registry(workspace) -> ToolRegistry:
    registry = ToolRegistry()
    register_builtin_tools(registry, workspace)
    return registry


def _declared(request) -> list[str]:
    return [t["function"]["name"] for t in request.tools]


def test_default_agent_declares_committers(tmp_path):
    registry = _builtin_registry(tmp_path)
    agent = build_agent(Settings(workspace=tmp_path), registry)
    model = scripted_model(completion("hi"))

    AgentRunner(registry, model).run(agent, "hello")

    declared = _declared(model.complete.call_args.args[0])
    for name in ("file_write_approved", "http_post_approved", "execute_command_approved"):
        assert name in declared
    assert declared.index("file_write") < declared.index("file_write_approved")


def test_approve_then_commit_across_two_turns(tmp_path):
    registry = _builtin_registry(tmp_path)
    agent = build_agent(Settings(workspace=tmp_path), registry)
    args = {"path": "notes.txt", "content": "hi"}
    model = scripted_model(
        completion(calls=[tool_call("c1", "file_write", args)]),
        completion("Approve writing notes.txt?"),
        completion(calls=[tool_call("c2", "file_write_approved", args)]),
        completion("Written."),
    )
    runner = AgentRunner(registry, model)

    first = runner.run(agent, "write hi to notes.txt")

    assert not (tmp_path / "notes.txt").exists()
    proposal = first.tool_results["file_write"]["result"]
    assert proposal["execute_tool_name"] == "file_write_approved"
    assert proposal["execute_args"] == args

    second = runner.run(
        agent,
        "yes, approved",
        conversation_id=first.conversation_id,
        conversation_history=first.messages,
    )

    assert second.content == "Written."
    assert (tmp_path / "notes.txt").read_text() == "hi"
    assert second.conversation_id == first.conversation_id
    assert "file_write_approved" in _declared(model.complete.call_args_list[2].args[0])


def test_fit_history_keeps_tool_groups_whole():
    history = [
        SystemMessage(content="You are a test agent."),
        UserMessage(content="read the log"),
        AssistantMessage(content="", tool_calls=[tool_call("c1", "read_log", {})]),
        ToolMessage(content="x" * 40000, tool_call_id="c1", name="read_log"),
        AssistantMessage(content="The log is long."),
        UserMessage(content="summarize it"),
    ]

    fitted = _fit_history(history, "unknown-model", 0.8, None)

    assert [m.role for m in fitted] == ["system", "assistant", "assistant", "user"]
    assert fitted[0] == history[0]
    assert fitted[2:] == history[4:]


def test_fit_history_leaves_short_history_alone():
    history = [SystemMessage(content="s"), UserMessage(content="hi")]
    assert _fit_history(history, "gpt-4o", 0.8, None) is history

"""Shared message factories for the test suite."""

from __future__ import annotations

import itertools

import pytest

from quill.types import Message, Session, ToolCall, ToolResult

_ids = itertools.count()


def make_message(role: str = "user", content: str = "Test message", **kwargs) -> Message:
    n = next(_ids)
    return Message(id=kwargs.pop("id", f"m{n}"), role=role, content=content, timestamp=kwargs.pop("timestamp", n), **kwargs)


def make_tool_pair(
    name: str = "read",
    arguments: dict | None = None,
    content: str = "Let me check that file.",
    output: str = "file contents",
) -> list[Message]:
    call_id = f"call-{next(_ids)}"
    assistant = make_message(
        "assistant",
        content,
        tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments or {"file_path": "src/app.py"})],
    )
    tool = make_message(
        "tool",
        f"[{name}]: {output}",
        tool_results=[ToolResult(tool_call_id=call_id, name=name, output=output)],
    )
    return [assistant, tool]


def make_conversation(turns: int, chars: int = 400, tool_every: int = 0) -> list[Message]:
    """Alternating user/assistant messages with a tool pair every ``tool_every`` turns."""
    messages: list[Message] = []
    for i in range(turns):
        messages.append(make_message("user", f"Question {i}: " + "q" * chars))
        if tool_every and i % tool_every == tool_every - 1:
            messages.extend(make_tool_pair(arguments={"file_path": f"src/mod_{i}.py"}))
        messages.append(make_message("assistant", f"Answer {i}: " + "a" * chars))
    return messages


def assert_pairs_intact(messages: list[Message]) -> None:
    """Every tool-call message is directly followed by its tool message and vice versa."""
    for i, msg in enumerate(messages):
        if msg.has_tool_calls:
            assert i + 1 < len(messages) and messages[i + 1].role == "tool", f"call {msg.id} lost its result"
        if msg.role == "tool":
            assert i > 0 and messages[i - 1].has_tool_calls, f"result {msg.id} lost its call"


@pytest.fixture
def session() -> Session:
    return Session(id="session-1", title="test", created_at=1, updated_at=1)

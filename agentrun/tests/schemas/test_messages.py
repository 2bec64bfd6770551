# agentrun/tests/schemas/test_messages.py
import pytest

from agentrun.schemas.messages import ChatMessage, ToolCallRequest


def test_parsed_arguments_from_text_and_dict():
    assert ToolCallRequest(id="1", name="t", arguments='{"a": 1}').parsed_arguments() == {"a": 1}
    assert ToolCallRequest(id="1", name="t", arguments="").parsed_arguments() == {}
    assert ToolCallRequest(id="1", name="t", arguments={"b": 2}).parsed_arguments() == {"b": 2}


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"text"'])
def test_parsed_arguments_rejects_non_objects(raw):
    with pytest.raises(ValueError):
        ToolCallRequest(id="1", name="t", arguments=raw).parsed_arguments()


def test_message_constructors():
    call = ToolCallRequest(id="c1", name="echo", arguments={"text": "hi"})
    assistant = ChatMessage.assistant("thinking", [call])
    assert assistant.role == "assistant"
    assert assistant.tool_calls[0].arguments_json() == '{"text": "hi"}'
    tool = ChatMessage.tool("c1", "echo", "{}")
    assert (tool.role, tool.tool_call_id, tool.name) == ("tool", "c1", "echo")

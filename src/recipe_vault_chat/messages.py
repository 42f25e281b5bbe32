from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ImageBlock:
    """Inline base64 image (no data-URL prefix)."""

    media_type: str
    data: str
    source_type: str = "base64"


ContentBlock = Union[TextBlock, ImageBlock]


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    tool_use_id: str
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class UserMessage:
    content: list[ContentBlock]

    @classmethod
    def from_text(cls, text: str) -> UserMessage:
        return cls(content=[TextBlock(text)])

    @property
    def text(self) -> str:
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))


@dataclass
class AssistantMessage:
    content: str | None = None
    tool_calls: list[ToolCall] | None = None


@dataclass
class ToolMessage:
    tool_results: list[ToolResult]


Message = Union[UserMessage, AssistantMessage, ToolMessage]


@dataclass(frozen=True)
class TextResponse:
    text: str


@dataclass(frozen=True)
class ToolUseResponse:
    tool_calls: list[ToolCall]


@dataclass(frozen=True)
class TextWithToolUseResponse:
    text: str
    tool_calls: list[ToolCall]


LlmResponse = Union[TextResponse, ToolUseResponse, TextWithToolUseResponse]


def build_llm_response(text: str, tool_calls: list[ToolCall]) -> LlmResponse:
    """Pick the response kind from parsed text and tool calls."""
    if not tool_calls:
        return TextResponse(text)
    if not text:
        return ToolUseResponse(tool_calls)
    return TextWithToolUseResponse(text, tool_calls)


# JSON accessors. Tool arguments and schemas are plain dicts validated where used.

def get_str(value: Any, key: str) -> str | None:
    if not isinstance(value, dict):
        return None
    item = value.get(key)
    return item if isinstance(item, str) else None


def require_str(value: Any, key: str) -> str:
    item = get_str(value, key)
    if item is None or not item.strip():
        raise ValueError(f"Missing or invalid string field '{key}'")
    return item


def get_number(value: Any, key: str) -> float | None:
    if not isinstance(value, dict):
        return None
    item = value.get(key)
    # bool is an int subclass
    if isinstance(item, bool) or not isinstance(item, (int, float)):
        return None
    return float(item)


def message_to_dict(message: Message) -> dict[str, Any]:
    if isinstance(message, UserMessage):
        blocks: list[dict[str, Any]] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                blocks.append({"type": "text", "text": block.text})
            else:
                blocks.append({
                    "type": "image",
                    "source": {
                        "type": block.source_type,
                        "media_type": block.media_type,
                        "data": block.data,
                    },
                })
        return {"role": "user", "content": blocks}

    if isinstance(message, AssistantMessage):
        out: dict[str, Any] = {"role": "assistant", "content": message.content}
        if message.tool_calls is not None:
            out["tool_calls"] = [
                {"id": c.id, "name": c.name, "arguments": c.arguments}
                for c in message.tool_calls
            ]
        return out

    return {
        "role": "tool",
        "tool_results": [
            {"tool_use_id": r.tool_use_id, "content": r.content, "is_error": r.is_error}
            for r in message.tool_results
        ],
    }


def message_from_dict(data: dict[str, Any]) -> Message:
    role = data.get("role")
    if role == "user":
        content: list[ContentBlock] = []
        for block in data.get("content") or []:
            if block.get("type") == "text":
                content.append(TextBlock(str(block.get("text", ""))))
            elif block.get("type") == "image":
                source = block.get("source") or {}
                content.append(ImageBlock(
                    media_type=str(source.get("media_type", "")),
                    data=str(source.get("data", "")),
                    source_type=str(source.get("type", "base64")),
                ))
        return UserMessage(content=content)

    if role == "assistant":
        raw_calls = data.get("tool_calls")
        tool_calls = None
        if raw_calls is not None:
            tool_calls = [
                ToolCall(id=c["id"], name=c["name"], arguments=c.get("arguments") or {})
                for c in raw_calls
            ]
        return AssistantMessage(content=data.get("content"), tool_calls=tool_calls)

    if role == "tool":
        return ToolMessage(tool_results=[
            ToolResult(
                tool_use_id=r["tool_use_id"],
                content=str(r.get("content", "")),
                is_error=bool(r.get("is_error", False)),
            )
            for r in data.get("tool_results") or []
        ])

    raise ValueError(f"Unknown message role: {role!r}")

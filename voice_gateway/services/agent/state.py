"""Conversation message models."""
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

Role = Literal["system", "user", "assistant", "tool"]


class ToolCallRequest(BaseModel):
    """A model-issued request to invoke a named tool."""

    id: str
    name: str
    arguments: str = "{}"  # JSON text exactly as the model produced it

    def to_openai(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


class ToolResult(BaseModel):
    """Outcome of one tool call, paired 1:1 with its request."""

    tool_call_id: str
    name: str
    content: str

    @classmethod
    def from_payload(
        cls, request: ToolCallRequest, payload: Dict[str, Any]
    ) -> "ToolResult":
        """Build a result from a JSON-serializable payload."""
        return cls(
            tool_call_id=request.id,
            name=request.name,
            content=json.dumps(payload, default=str),
        )

    def payload(self) -> Dict[str, Any]:
        """Decode the result content."""
        return json.loads(self.content)

    def to_message(self) -> "ChatMessage":
        return ChatMessage(role="tool", content=self.content, tool_call_id=self.tool_call_id)


class ChatMessage(BaseModel):
    """One entry of a call's conversation history."""

    role: Role
    content: Optional[str] = None
    tool_calls: List[ToolCallRequest] = []
    tool_call_id: Optional[str] = None

    def to_openai(self) -> Dict[str, Any]:
        """Convert to the chat completions wire format."""
        if self.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": self.tool_call_id,
                "content": self.content or "",
            }
        message: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.role == "assistant" and self.tool_calls:
            message["tool_calls"] = [call.to_openai() for call in self.tool_calls]
        elif message["content"] is None:
            message["content"] = ""
        return message

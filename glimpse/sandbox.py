from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

# Capabilities granted to every preview iframe
SANDBOX_PERMISSIONS = "allow-scripts allow-same-origin allow-forms allow-modals allow-pointer-lock"


class LoadedMessage(BaseModel):
    type: Literal["loaded"] = "loaded"


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    message: str = "Unknown error"
    source: Optional[str] = None
    lineno: Optional[int] = None
    colno: Optional[int] = None


SandboxMessage = Annotated[Union[LoadedMessage, ErrorMessage], Field(discriminator="type")]

_message_adapter: TypeAdapter = TypeAdapter(SandboxMessage)


def parse_sandbox_message(payload: Dict[str, Any]) -> Union[LoadedMessage, ErrorMessage]:
    """Validate a message posted from a preview iframe; raises pydantic.ValidationError."""
    return _message_adapter.validate_python(payload)


def describe_sandbox_message(msg: Union[LoadedMessage, ErrorMessage]) -> str:
    if isinstance(msg, ErrorMessage):
        if msg.lineno:
            return f"{msg.message} (Line: {msg.lineno})"
        return msg.message
    return "loaded"

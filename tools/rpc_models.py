"""Pydantic models for the line-delimited JSON-RPC envelope"""
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from ai.models.image_models import ImagePrompt


class GetInfoCall(BaseModel):
    id: Any = None
    method: Literal["get_info"]
    params: Optional[Any] = None


class GenerateImageCall(BaseModel):
    id: Any = None
    method: Literal["generate_image"]
    params: ImagePrompt


ToolCall = Annotated[Union[GetInfoCall, GenerateImageCall], Field(discriminator="method")]

tool_call_adapter = TypeAdapter(ToolCall)

SUPPORTED_METHODS = ("get_info", "generate_image")


class RpcErrorBody(BaseModel):
    message: str


class RpcResult(BaseModel):
    id: Any = None
    result: Any


class RpcFailure(BaseModel):
    id: Any = None
    error: RpcErrorBody

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    CONNECTION = "ConnectionError"
    TIMEOUT = "TimeoutError"
    PROTOCOL = "ProtocolError"
    RPC = "RpcError"
    EMPTY_RESULT = "EmptyResultError"
    HTTP_STATUS = "HttpStatusError"
    INVALID_REQUEST = "InvalidRequestError"


class ToolArguments(BaseModel):
    image: str
    crop: str | None = None


class ToolCallParams(BaseModel):
    name: str
    arguments: ToolArguments


class ToolCallRequest(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: int
    method: str = "tools/call"
    params: ToolCallParams

    def to_wire(self) -> dict[str, Any]:
        # crop is left off the wire entirely when no hint was given
        return self.model_dump(exclude_none=True)


class RpcEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    jsonrpc: Any = "2.0"
    id: Any = None
    result: Any = None
    error: Any = None


class TransportOutcome(BaseModel):
    text: str
    complete: bool = True
    transport: str = ""


class DiagnosisSuccess(BaseModel):
    success: Literal[True] = True
    diagnosis: Any


class DiagnosisFailure(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[False] = False
    error: str
    error_kind: ErrorKind = Field(alias="errorKind")


ClientResult = DiagnosisSuccess | DiagnosisFailure

from typing import Any

from pydantic import BaseModel, Field


class DiagnoseRequest(BaseModel):
    image: str
    crop: str | None = None


class CropInfo(BaseModel):
    name: str
    scientific_name: str | None = None


class HealthStatus(BaseModel):
    overall: str
    confidence: float


class Issue(BaseModel):
    name: str
    category: str
    severity: str
    symptoms: list[str] = Field(default_factory=list)


class Diagnosis(BaseModel):
    crop: CropInfo
    health_status: HealthStatus
    issues: list[Issue] = Field(default_factory=list)
    treatment_recommendations: list[str] = Field(default_factory=list)
    diagnostic_notes: str = ""
    requires_lab_test: bool = False
    stats: dict[str, float] = Field(default_factory=dict)


class McpRpcRequest(BaseModel):
    jsonrpc: str = "2.0"
    id: str | int | None = None
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


class McpRpcResponse(BaseModel):
    jsonrpc: str = "2.0"
    id: str | int | None = None
    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None

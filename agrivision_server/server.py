import json

from fastapi import FastAPI
from fastapi.responses import StreamingResponse

from agrivision_server.plant_ops import NotAPlantError, diagnose_plant_image
from agrivision_server.schemas import DiagnoseRequest, Diagnosis, McpRpcRequest, McpRpcResponse

TOOL_NAME = "diagnose_plant_health"


def sse_frame(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def dispatch_rpc(payload: McpRpcRequest) -> McpRpcResponse:
    if payload.method == "initialize":
        return McpRpcResponse(
            id=payload.id,
            result={
                "protocolVersion": "2025-03-26",
                "serverInfo": {"name": "agrivision-mcp", "version": "0.1.0"},
                "capabilities": {"tools": {}},
            },
        )

    if payload.method == "tools/list":
        return McpRpcResponse(
            id=payload.id,
            result={
                "tools": [
                    {
                        "name": TOOL_NAME,
                        "description": "Diagnose plant health from a leaf or canopy photo",
                        "inputSchema": {
                            "type": "object",
                            "properties": {
                                "image": {"type": "string"},
                                "crop": {"type": "string"},
                            },
                            "required": ["image"],
                        },
                    }
                ]
            },
        )

    if payload.method == "tools/call":
        name = payload.params.get("name")
        arguments = payload.params.get("arguments", {})
        if name != TOOL_NAME:
            return McpRpcResponse(
                id=payload.id,
                error={"code": -32602, "message": f"Unknown tool: {name}"},
            )
        if not isinstance(arguments, dict) or not arguments.get("image"):
            return McpRpcResponse(
                id=payload.id,
                error={"code": -32602, "message": "image is required"},
            )

        req = DiagnoseRequest.model_validate(arguments)
        try:
            diagnosis: Diagnosis = diagnose_plant_image(req.image, req.crop)
        except NotAPlantError as exc:
            text = f"Not a plant image: {exc}"
        else:
            text = diagnosis.model_dump_json()
        return McpRpcResponse(
            id=payload.id,
            result={"content": [{"type": "text", "text": text}]},
        )

    return McpRpcResponse(
        id=payload.id,
        error={"code": -32601, "message": f"Method not found: {payload.method}"},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="AgriVision MCP Server", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/mcp")
    def mcp_rpc(payload: McpRpcRequest) -> StreamingResponse:
        response = dispatch_rpc(payload).model_dump(exclude_none=True)

        def event_generator():
            yield sse_frame("message", response)

        return StreamingResponse(event_generator(), media_type="text/event-stream")

    return app


app = create_app()

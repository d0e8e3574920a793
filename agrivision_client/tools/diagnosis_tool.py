from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

from agrivision_client.client import diagnose_plant_health


class DiagnosePlantHealthArgs(BaseModel):
    image_base64: str = Field(..., description="Base64 image, with or without a data: URL prefix")
    crop: str | None = Field(default=None, description="Optional crop hint such as 'maize' or 'tomato'")


async def _diagnose_plant_health_tool(
    image_base64: str,
    crop: str | None = None,
) -> dict:
    result = await diagnose_plant_health(image_base64=image_base64, crop=crop)
    return result.model_dump(mode="json", by_alias=True)


def build_diagnose_plant_health_tool() -> StructuredTool:
    return StructuredTool.from_function(
        coroutine=_diagnose_plant_health_tool,
        name="diagnose_plant_health",
        description="Diagnose plant health from a photo via the AgriVision tool server.",
        args_schema=DiagnosePlantHealthArgs,
    )

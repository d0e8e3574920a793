import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    agrivision_url: str = os.getenv("AGRIVISION_URL", "https://agrivision-mcp.up.railway.app/mcp")
    timeout_ms: int = int(os.getenv("AGRIVISION_TIMEOUT_MS", "45000"))
    tool_name: str = os.getenv("AGRIVISION_TOOL_NAME", "diagnose_plant_health")
    streaming_enabled: bool = os.getenv("AGRIVISION_STREAMING", "true").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "true").lower() == "true"
    enable_metrics: bool = os.getenv("ENABLE_METRICS", "true").lower() == "true"

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


settings = Settings()

"""Configuration from environment variables (.env)."""

import os
from pathlib import Path
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    project_root: Path
    logs_dir: Path
    data_store_url: str
    data_store_token: str
    data_store_timeout: float  # seconds, applied by the HTTP place store only
    refresh_throttle_ms: float  # global throttle for re-fetching empty caches
    demo_map_id: str
    pending_selection_timeout: float  # seconds before a pending selection is abandoned
    event_log_enabled: bool

    @classmethod
    def load(cls) -> "Config":
        project_root = Path(__file__).parent.parent.parent
        return cls(
            project_root=project_root,
            logs_dir=Path(os.getenv("TRACEBOOK_LOGS_DIR", str(project_root / "logs"))),
            data_store_url=os.getenv("TRACEBOOK_DATA_STORE_URL", ""),
            data_store_token=os.getenv("TRACEBOOK_DATA_STORE_TOKEN", ""),
            data_store_timeout=float(os.getenv("TRACEBOOK_DATA_STORE_TIMEOUT", "10")),
            refresh_throttle_ms=float(os.getenv("TRACEBOOK_REFRESH_THROTTLE_MS", "5000")),
            demo_map_id=os.getenv("TRACEBOOK_DEMO_MAP_ID", "guest-demo-map"),
            pending_selection_timeout=float(
                os.getenv("TRACEBOOK_PENDING_SELECTION_TIMEOUT", "15")
            ),
            event_log_enabled=_as_bool(os.getenv("TRACEBOOK_EVENT_LOG"), True),
        )

    def validate(self) -> list[str]:
        errors = []
        if self.refresh_throttle_ms < 0:
            errors.append(
                f"TRACEBOOK_REFRESH_THROTTLE_MS must be >= 0 (got {self.refresh_throttle_ms})"
            )
        if self.pending_selection_timeout <= 0:
            errors.append(
                "TRACEBOOK_PENDING_SELECTION_TIMEOUT must be > 0 "
                f"(got {self.pending_selection_timeout})"
            )
        if self.data_store_timeout <= 0:
            errors.append(
                f"TRACEBOOK_DATA_STORE_TIMEOUT must be > 0 (got {self.data_store_timeout})"
            )
        if not self.demo_map_id.strip():
            errors.append("TRACEBOOK_DEMO_MAP_ID must not be empty")
        return errors


config = Config.load()

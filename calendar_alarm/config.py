"""Configuration management - calendar alarm settings"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
load_dotenv(override=True)


@dataclass
class Settings:
    """Service settings"""

    # Storage (alarm.yaml + alarm_state.db)
    data_dir: Path = field(default_factory=lambda: Path.home() / ".calendar-alarm")

    # Calendar (.ics file)
    ics_path: Optional[Path] = None

    # Scheduling
    search_interval_hours: float = 1
    default_offset_minutes: int = 90

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables"""
        ics_path = os.getenv("CALENDAR_ALARM_ICS_PATH")
        debug = os.getenv("DEBUG", "").lower() in ("1", "true")

        return cls(
            data_dir=Path(os.getenv(
                "CALENDAR_ALARM_DATA_DIR", str(Path.home() / ".calendar-alarm")
            )).expanduser(),
            ics_path=Path(ics_path).expanduser() if ics_path else None,
            search_interval_hours=float(os.getenv("CALENDAR_ALARM_SEARCH_INTERVAL_HOURS", "1")),
            default_offset_minutes=int(os.getenv("CALENDAR_ALARM_DEFAULT_OFFSET", "90")),
            log_level=os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO").upper(),
            debug=debug,
        )


# Global settings instance
settings = Settings.from_env()

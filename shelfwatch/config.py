"""TOML configuration loader for shelfwatch."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


@dataclass
class DatabaseConfig:
    path: str = "~/.config/shelfwatch/products.db"


@dataclass
class UserConfig:
    id: str = "default"


@dataclass
class CameraConfig:
    index: int = 0
    save_dir: str = "/tmp/shelfwatch"


@dataclass
class ClaudeRecognitionConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiRecognitionConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class RecognitionConfig:
    backend: str = "claude"
    claude: ClaudeRecognitionConfig = field(default_factory=ClaudeRecognitionConfig)
    gemini: GeminiRecognitionConfig = field(default_factory=GeminiRecognitionConfig)


@dataclass
class DiscordConfig:
    webhook_url: str = ""
    username: str = "shelfwatch"


@dataclass
class NotificationConfig:
    backend: str = "log"
    discord: DiscordConfig = field(default_factory=DiscordConfig)


@dataclass
class ReminderConfig:
    schedule: str = "0 9 * * *"


@dataclass
class ExportConfig:
    path: str = "filtered_expiry_data.csv"


@dataclass
class GDriveConfig:
    enabled: bool = False
    credentials_path: str = "~/.config/shelfwatch/gdrive_credentials.json"
    token_path: str = "~/.config/shelfwatch/gdrive_token.json"
    folder_id: str = ""


@dataclass
class ShelfwatchConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    user: UserConfig = field(default_factory=UserConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    reminders: ReminderConfig = field(default_factory=ReminderConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    gdrive: GDriveConfig = field(default_factory=GDriveConfig)


def load_config(path: str | Path | None = None) -> ShelfwatchConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys and the webhook URL can be supplied via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    dbs = raw.get("database", {})
    usr = raw.get("user", {})
    cam = raw.get("camera", {})
    rec = raw.get("recognition", {})
    ntf = raw.get("notifications", {})
    rem = raw.get("reminders", {})
    exp = raw.get("export", {})
    gdr = raw.get("gdrive", {})

    claude_cfg = rec.get("claude", {})
    gemini_cfg = rec.get("gemini", {})
    discord_cfg = ntf.get("discord", {})

    # Resolve secrets: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )
    webhook_url = discord_cfg.get("webhook_url", "") or os.environ.get(
        "DISCORD_WEBHOOK_URL", ""
    )

    return ShelfwatchConfig(
        database=DatabaseConfig(
            path=dbs.get("path", "~/.config/shelfwatch/products.db"),
        ),
        user=UserConfig(
            id=str(usr.get("id", "default")),
        ),
        camera=CameraConfig(
            index=cam.get("index", 0),
            save_dir=cam.get("save_dir", "/tmp/shelfwatch"),
        ),
        recognition=RecognitionConfig(
            backend=rec.get("backend", "claude"),
            claude=ClaudeRecognitionConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiRecognitionConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
        ),
        notifications=NotificationConfig(
            backend=ntf.get("backend", "log"),
            discord=DiscordConfig(
                webhook_url=webhook_url,
                username=discord_cfg.get("username", "shelfwatch"),
            ),
        ),
        reminders=ReminderConfig(
            schedule=rem.get("schedule", "0 9 * * *"),
        ),
        export=ExportConfig(
            path=exp.get("path", "filtered_expiry_data.csv"),
        ),
        gdrive=GDriveConfig(
            enabled=gdr.get("enabled", False),
            credentials_path=gdr.get(
                "credentials_path",
                "~/.config/shelfwatch/gdrive_credentials.json",
            ),
            token_path=gdr.get(
                "token_path",
                "~/.config/shelfwatch/gdrive_token.json",
            ),
            folder_id=gdr.get("folder_id", ""),
        ),
    )

"""TOML configuration loader."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .ledger import DEFAULT_LOCATIONS


@dataclass
class DatabaseConfig:
    path: str = "~/.config/beautytrack/ledger.db"


@dataclass
class LocationsConfig:
    names: list[str] = field(default_factory=lambda: list(DEFAULT_LOCATIONS))
    current: str = "downtown"


@dataclass
class ClaudeOCRConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class OCRConfig:
    backend: str = "claude"
    claude: ClaudeOCRConfig = field(default_factory=ClaudeOCRConfig)


@dataclass
class NotificationsConfig:
    low_stock_alerts: bool = True
    toast_seconds: float = 3.0


@dataclass
class BackupConfig:
    export_dir: str = ""


@dataclass
class BeautyTrackConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    locations: LocationsConfig = field(default_factory=LocationsConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)


def load_config(path: str | Path | None = None) -> BeautyTrackConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The Anthropic API key can come from the ANTHROPIC_API_KEY environment
    variable when the file leaves it empty.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    dbs = raw.get("database", {})
    loc = raw.get("locations", {})
    ocr = raw.get("ocr", {})
    ntf = raw.get("notifications", {})
    bkp = raw.get("backup", {})

    claude_cfg = ocr.get("claude", {})

    # config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )

    names = loc.get("names", list(DEFAULT_LOCATIONS))
    current = loc.get("current", names[0] if names else "")

    return BeautyTrackConfig(
        database=DatabaseConfig(
            path=dbs.get("path", "~/.config/beautytrack/ledger.db"),
        ),
        locations=LocationsConfig(names=names, current=current),
        ocr=OCRConfig(
            backend=ocr.get("backend", "claude"),
            claude=ClaudeOCRConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
        ),
        notifications=NotificationsConfig(
            low_stock_alerts=ntf.get("low_stock_alerts", True),
            toast_seconds=float(ntf.get("toast_seconds", 3.0)),
        ),
        backup=BackupConfig(
            export_dir=bkp.get("export_dir", ""),
        ),
    )

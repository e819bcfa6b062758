"""
Configuration management for screenbrain.

Priority order for every setting:
1. Environment variables (for the handful listed below)
2. Config file (~/.screenbrain/config.json or $SCREENBRAIN_CONFIG)
3. Dataclass defaults
"""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv

# Auto-load .env from project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


DEFAULT_CONFIG_PATH = Path.home() / ".screenbrain" / "config.json"


def _filter_dataclass_fields(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter dict to only include fields that exist in the dataclass."""
    valid_fields = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_fields}


@dataclass
class ModelConfig:
    """Model selection and sampling for the two pipeline stages."""

    provider: Literal["anthropic", "openai"] = "anthropic"
    vision_model: str = "claude-sonnet-4-20250514"
    # Structuring is a text-only call; JSON generation is unreliable when
    # combined with image reasoning.
    structure_model: str = "claude-haiku-4-5-20251001"

    vision_temperature: float = 0.2
    structure_temperature: float = 0.2
    strict_temperature: float = 0.1

    vision_max_tokens: int = 700
    structure_max_tokens: int = 900

    timeout_seconds: float = 60.0


@dataclass
class CaptureConfig:
    """Input limits for a capture."""

    allowed_mime_types: list[str] = field(default_factory=lambda: ["image/png", "image/jpeg"])
    max_image_bytes: int = 5 * 1024 * 1024
    min_goal_words: int = 2
    vision_text_clamp: int = 2000


@dataclass
class StorageConfig:
    """Session persistence settings."""

    sessions_dir: str = "~/.screenbrain/sessions"

    @property
    def sessions_path(self) -> Path:
        return Path(self.sessions_dir).expanduser()


@dataclass
class ServerConfig:
    """HTTP surface settings."""

    host: str = "127.0.0.1"
    port: int = 8787
    cookie_name: str = "sid"
    header_name: str = "X-Sid"
    log_level: str = "INFO"


@dataclass
class ScreenBrainConfig:
    """Complete screenbrain configuration."""

    models: ModelConfig = field(default_factory=ModelConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "ScreenBrainConfig":
        """Load configuration from file, then apply environment overrides."""
        if path is None:
            env_path = os.environ.get("SCREENBRAIN_CONFIG")
            path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

        data: dict[str, Any] = {}
        if path.exists():
            with open(path) as f:
                data = json.load(f)

        config = cls(
            models=ModelConfig(**_filter_dataclass_fields(data.get("models", {}), ModelConfig)),
            capture=CaptureConfig(**_filter_dataclass_fields(data.get("capture", {}), CaptureConfig)),
            storage=StorageConfig(**_filter_dataclass_fields(data.get("storage", {}), StorageConfig)),
            server=ServerConfig(**_filter_dataclass_fields(data.get("server", {}), ServerConfig)),
        )
        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Apply environment variable overrides in place."""
        if os.environ.get("VISION_MODEL_ID"):
            self.models.vision_model = os.environ["VISION_MODEL_ID"]
        if os.environ.get("STRUCTURE_MODEL_ID"):
            self.models.structure_model = os.environ["STRUCTURE_MODEL_ID"]
        provider = os.environ.get("SCREENBRAIN_PROVIDER", "").strip().lower()
        if provider in ("anthropic", "openai"):
            self.models.provider = provider
        if os.environ.get("SCREENBRAIN_SESSIONS_DIR"):
            self.storage.sessions_dir = os.environ["SCREENBRAIN_SESSIONS_DIR"]

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(
                {
                    "models": asdict(self.models),
                    "capture": asdict(self.capture),
                    "storage": asdict(self.storage),
                    "server": asdict(self.server),
                },
                f,
                indent=2,
            )


# Default configuration instance
default_config = ScreenBrainConfig()


__all__ = [
    "CaptureConfig",
    "DEFAULT_CONFIG_PATH",
    "ModelConfig",
    "ScreenBrainConfig",
    "ServerConfig",
    "StorageConfig",
    "default_config",
]

"""
screenbrain: screenshot + goal -> structured screen analysis with
durable per-session memory.

Two-stage inference (vision text, then structured JSON) with extraction,
a single strict repair attempt and total normalization, served over a
small Flask API.
"""

__version__ = "0.1.0"

from .config import ScreenBrainConfig, default_config
from .errors import ScreenBrainError
from .llm_client import BaseLLMClient, LLMError, init_client
from .pipeline import CaptureOrchestrator, CaptureRequest, ImageUpload
from .session import Brain, SessionRegistry, SessionState

__all__ = [
    "__version__",
    "BaseLLMClient",
    "Brain",
    "CaptureOrchestrator",
    "CaptureRequest",
    "ImageUpload",
    "LLMError",
    "ScreenBrainConfig",
    "ScreenBrainError",
    "SessionRegistry",
    "SessionState",
    "default_config",
    "init_client",
]

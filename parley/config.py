"""Central configuration for parley.

Static settings come from environment variables (``PARLEY_<SECTION>_<NAME>``),
then the TOML file named by ``PARLEY_CONFIG_FILE``, then built-in defaults.
``Config`` wraps them with the mutable, live-queried state the core consumes.
"""

from __future__ import annotations

import os
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Final, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older interpreters
    import tomli as tomllib

DEFAULT_MODEL: Final[str] = "gemini-2.5-pro"
DEFAULT_FLASH_MODEL: Final[str] = "gemini-2.5-flash"
DEFAULT_EMBEDDING_MODEL: Final[str] = "gemini-embedding-001"
DEFAULT_BASE_URL: Final[str] = "https://generativelanguage.googleapis.com/v1beta"

PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = Path(os.environ.get("PARLEY_CONFIG_FILE", PROJECT_ROOT / "parley.toml"))


def _load_config_data(path: Path = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    if path.exists():
        with path.open("rb") as fh:
            return tomllib.load(fh)
    return {}


_CONFIG_DATA = _load_config_data()


def _get_setting(section: str, name: str, default: Any) -> str:
    env_key = f"PARLEY_{section.upper()}_{name.upper()}"
    if env_key in os.environ:
        return os.environ[env_key]
    section_data = _CONFIG_DATA.get(section, {})
    return str(section_data.get(name, default))


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for the model provider."""

    base_url: str = _get_setting("provider", "base_url", DEFAULT_BASE_URL)
    api_key: str = os.environ.get("GEMINI_API_KEY", _get_setting("provider", "api_key", ""))
    auth_type: str = _get_setting("provider", "auth_type", "gemini-api-key")
    model: str = _get_setting("provider", "model", DEFAULT_MODEL)
    embedding_model: str = _get_setting("provider", "embedding_model", DEFAULT_EMBEDDING_MODEL)
    request_timeout: int = int(_get_setting("provider", "request_timeout", 120))


@dataclass(frozen=True)
class CompressionConfig:
    """History compression tuning.

    token_threshold: fraction of the model's token limit at which history is
        summarized.
    preserve_fraction: share of history (by serialized weight) kept verbatim.
    """

    token_threshold: float = float(_get_setting("compression", "token_threshold", 0.7))
    preserve_fraction: float = float(_get_setting("compression", "preserve_fraction", 0.3))


@dataclass(frozen=True)
class Paths:
    """Filesystem paths used by the package."""

    project_root: Path = PROJECT_ROOT
    state_dir: Path = Path(_get_setting("paths", "state_dir", Path.home() / ".parley"))
    config_file: Path = DEFAULT_CONFIG_PATH

    @property
    def log_dir(self) -> Path:
        return self.state_dir / "logs"


@dataclass(frozen=True)
class AppConfig:
    """Aggregate static configuration."""

    paths: Paths = field(default_factory=Paths)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    compression: CompressionConfig = field(default_factory=CompressionConfig)


SETTINGS: Final[AppConfig] = AppConfig()

FallbackHandler = Callable[[str, str], bool]


class Config:
    """Live configuration handed to the client and its collaborators.

    Every getter returns the value current at the moment of the call. Callers
    must fetch the model at each use point instead of keeping it around, so a
    fallback or any other model switch applies to the very next request.
    """

    def __init__(
        self,
        settings: Optional[AppConfig] = None,
        *,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        user_memory: str = "",
        working_dir: Optional[str] = None,
        session_id: Optional[str] = None,
        flash_fallback_handler: Optional[FallbackHandler] = None,
    ) -> None:
        self.settings = settings or SETTINGS
        self._lock = threading.Lock()
        self._model = model or self.settings.provider.model
        self._embedding_model = embedding_model or self.settings.provider.embedding_model
        self._user_memory = user_memory
        self._working_dir = working_dir or os.getcwd()
        self._session_id = session_id or uuid.uuid4().hex
        self._model_switched = False
        self.flash_fallback_handler = flash_fallback_handler

    def get_model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        with self._lock:
            if model != self._model:
                self._model_switched = True
            self._model = model

    def is_model_switched_during_session(self) -> bool:
        return self._model_switched

    def get_embedding_model(self) -> str:
        return self._embedding_model

    def get_auth_type(self) -> str:
        return self.settings.provider.auth_type

    def get_user_memory(self) -> str:
        return self._user_memory

    def set_user_memory(self, memory: str) -> None:
        self._user_memory = memory

    def get_working_dir(self) -> str:
        return self._working_dir

    def get_session_id(self) -> str:
        return self._session_id

    def get_compression(self) -> CompressionConfig:
        return self.settings.compression


__all__ = [
    "AppConfig",
    "CompressionConfig",
    "Config",
    "DEFAULT_BASE_URL",
    "DEFAULT_EMBEDDING_MODEL",
    "DEFAULT_FLASH_MODEL",
    "DEFAULT_MODEL",
    "FallbackHandler",
    "Paths",
    "ProviderConfig",
    "SETTINGS",
]

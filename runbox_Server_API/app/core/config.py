# config.py
# Description: Configuration settings for the runbox server application.
#
# Imports
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from collections.abc import MutableMapping
#
# 3rd-party Libraries
from dotenv import load_dotenv
from loguru import logger

# Records logged while this module is still importing are held back and
# emitted once it has finished loading.
_LOGGER_READY = False
_PENDING_LOGS: list[tuple[str, str]] = []


def _startup_log(level: str, message: str) -> None:
    if _LOGGER_READY:
        logger.log(level, message)
    else:
        _PENDING_LOGS.append((level, message))


def _flush_startup_logs() -> None:
    while _PENDING_LOGS:
        level, message = _PENDING_LOGS.pop(0)
        logger.log(level, message)


# Project root is the directory holding the runbox_Server_API package
ACTUAL_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent
API_ROOT = ACTUAL_PROJECT_ROOT / "runbox_Server_API"


def _load_env_files_early() -> None:
    """Load .env files before any environment reads.

    Keeping override=False ensures explicit environment variables are not
    replaced by values from the files.
    """
    candidate_env_paths = [
        ACTUAL_PROJECT_ROOT / '.env',
        API_ROOT / '.env',
        API_ROOT / 'Config_Files' / '.env',
    ]
    loaded_any = False
    for p in candidate_env_paths:
        if p.exists():
            _startup_log("INFO", f"Early loading environment variables from: {str(p)}")
            load_dotenv(dotenv_path=str(p), override=False)
            loaded_any = True
    if not loaded_any:
        _startup_log("DEBUG", "Early .env load: no candidate files found; relying on process env")


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        _startup_log("WARNING", f"Invalid integer for {key}={raw!r}; using default {default}")
        return default


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        _startup_log("WARNING", f"Invalid number for {key}={raw!r}; using default {default}")
        return default


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on", "y"}


########################################################################################################################
#
# Functions:

def load_settings() -> Dict[str, Any]:
    """
    Assembles sandbox runtime settings from environment variables into a single mapping.

    Returns:
        dict: consolidated configuration values keyed by setting name
        (PROJECT_ROOT, SANDBOX_CONFIG_DIR, SANDBOX_KILL_TIMEOUT_SEC, ...).
    """
    _load_env_files_early()

    default_config_dir = API_ROOT / "Config_Files" / "sandboxes"
    config_dir = os.getenv("SANDBOX_CONFIG_DIR") or str(default_config_dir)
    tmp_dir: Optional[str] = os.getenv("SANDBOX_TMP_DIR") or None
    if tmp_dir is None:
        tmp_dir = tempfile.gettempdir()

    settings_dict: Dict[str, Any] = {
        "PROJECT_ROOT": ACTUAL_PROJECT_ROOT,
        "SANDBOX_CONFIG_DIR": config_dir,
        "SANDBOX_TMP_DIR": tmp_dir,
        "SANDBOX_DOCKER_BINARY": os.getenv("SANDBOX_DOCKER_BINARY", "docker"),
        "SANDBOX_KILL_TIMEOUT_SEC": _env_float("SANDBOX_KILL_TIMEOUT_SEC", 5.0),
        "SANDBOX_KILL_WORKERS": _env_int("SANDBOX_KILL_WORKERS", 4),
        "SANDBOX_ENABLE_API": _env_bool("SANDBOX_ENABLE_API", True),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
    }
    _startup_log("DEBUG", f"Sandbox config dir: {config_dir}")
    return settings_dict


# --- Lazy settings ---

class LazySettings(MutableMapping[str, Any]):
    """Settings mapping built by `loader` on first access.

    Keys are also readable and writable as attributes, so callers can use
    `getattr(settings, "KEY", default)`.
    """

    def __init__(self, loader: Callable[[], Optional[Dict[str, Any]]]) -> None:
        object.__setattr__(self, "_loader", loader)
        object.__setattr__(self, "_data", None)

    def _load(self) -> Dict[str, Any]:
        data = object.__getattribute__(self, "_data")
        if data is None:
            data = object.__getattribute__(self, "_loader")() or {}
            object.__setattr__(self, "_data", data)
        return data

    def __getitem__(self, key: str) -> Any:
        return self._load()[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._load()[key] = value

    def __delitem__(self, key: str) -> None:
        del self._load()[key]

    def __iter__(self):
        return iter(self._load())

    def __len__(self) -> int:
        return len(self._load())

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._load()[name]
        except KeyError as exc:
            raise AttributeError(name) from exc

    def __setattr__(self, name: str, value: Any) -> None:
        self._load()[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self._load()[name]
        except KeyError as exc:
            raise AttributeError(name) from exc


settings = LazySettings(load_settings)

_LOGGER_READY = True
_flush_startup_logs()


def clear_config_cache() -> None:
    """Clear cached configuration (for tests or dynamic reloads)."""
    object.__setattr__(settings, "_data", None)

#
# End of config.py
#######################################################################################################################

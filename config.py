import multiprocessing
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _default_start_method() -> str:
    # Only fork accepts unpicklable worker targets.
    methods = multiprocessing.get_all_start_methods()
    return "fork" if "fork" in methods else methods[0]


LOG_LEVEL = os.getenv("MP3TAGFIX_LOG_LEVEL", "INFO").strip().upper()
DRY_RUN = _env_bool("MP3TAGFIX_DRY_RUN", False)
# Seconds a worker may run on one file; 0 waits forever.
WORKER_TIMEOUT = _env_float("MP3TAGFIX_WORKER_TIMEOUT", 0.0)
START_METHOD = os.getenv("MP3TAGFIX_START_METHOD", "").strip() or _default_start_method()

MP3_SUFFIX = ".mp3"

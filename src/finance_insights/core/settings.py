import os

from dotenv import find_dotenv, load_dotenv

from finance_insights.logger import get_logger
from finance_insights.models import AIConfig, DateFormatHint

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

DEFAULT_AI_BATCH_SIZE = 50
DEFAULT_AI_PROVIDER = "google"
DEFAULT_IMPORT_MODEL = "gemini-flash-lite-latest"
DEFAULT_RECATEGORIZE_MODEL = "gemini-3-flash-preview"
DEFAULT_IMPORT_TEMPERATURE = 0.0
DEFAULT_RECATEGORIZE_TEMPERATURE = 0.5
DATE_FORMAT_HINTS: tuple[DateFormatHint, ...] = ("auto", "DMY", "MDY")

_CONFIG_FILE_VALUES: dict[str, str] = {}

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "AI_SERVICE_URL",
    "AI_PROVIDER",
    "AI_BATCH_SIZE",
    "AI_IMPORT_MODEL",
    "AI_RECATEGORIZE_MODEL",
    "AI_IMPORT_TEMPERATURE",
    "AI_RECATEGORIZE_TEMPERATURE",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "DATE_FORMAT",
    "DAY_FIRST",
    "HOST",
    "PORT",
)

_SENSITIVE_MARKERS = ("KEY", "TOKEN", "SECRET", "PASSWORD", "AUTH")


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    return find_dotenv(usecwd=True) or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    return os.path.join(os.getcwd(), CONFIG_FILENAME)


def _clean_config_value(raw_value: str) -> str:
    value = raw_value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    if " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` pairs; nested YAML is not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            value = _clean_config_value(raw_value)
            if key and value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_VALUES

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _CONFIG_FILE_VALUES = read_config_file(_resolve_config_path())
    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def ensure_dirs(*paths: str | None) -> None:
    for path in paths:
        if path and path not in {".", "./"}:
            os.makedirs(path, exist_ok=True)


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default


def get_env_bool(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def get_batch_size() -> int:
    return get_env_int("AI_BATCH_SIZE", DEFAULT_AI_BATCH_SIZE, min_value=1)


def get_date_format() -> DateFormatHint:
    raw = (os.getenv("DATE_FORMAT") or "auto").strip()
    for hint in DATE_FORMAT_HINTS:
        if raw.upper() == hint.upper():
            return hint
    logger.warning("[ENV] Invalid DATE_FORMAT='%s', using 'auto'.", raw)
    return "auto"


def get_day_first() -> bool | None:
    return get_env_bool("DAY_FIRST")


def import_ai_config() -> AIConfig:
    """Bulk import favours throughput: cheap model, deterministic, no reasoning."""
    return AIConfig(
        provider=os.getenv("AI_PROVIDER") or DEFAULT_AI_PROVIDER,
        model_name=os.getenv("AI_IMPORT_MODEL") or DEFAULT_IMPORT_MODEL,
        temperature=get_env_float("AI_IMPORT_TEMPERATURE", DEFAULT_IMPORT_TEMPERATURE),
        enable_thinking=False,
    )


def recategorize_ai_config() -> AIConfig:
    """A user-triggered second pass favours accuracy: stronger model with reasoning."""
    return AIConfig(
        provider=os.getenv("AI_PROVIDER") or DEFAULT_AI_PROVIDER,
        model_name=os.getenv("AI_RECATEGORIZE_MODEL") or DEFAULT_RECATEGORIZE_MODEL,
        temperature=get_env_float("AI_RECATEGORIZE_TEMPERATURE", DEFAULT_RECATEGORIZE_TEMPERATURE),
        enable_thinking=True,
    )


def _mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    sensitive = any(marker in name.upper() for marker in _SENSITIVE_MARKERS)
    if not sensitive and not sanitized.startswith(("sk-", "Bearer ")):
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


# SSE headers to reduce proxy buffering and keep connections alive.
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = get_env_int("PORT", 8000, min_value=1)

ensure_dirs(DATA_DIR, LOG_DIR)

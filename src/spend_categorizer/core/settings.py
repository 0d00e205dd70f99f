import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from spend_categorizer.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
    "ML_CONF_THRESHOLD",
    "AI_CONFIDENCE",
    "RULE_BASE_CONFIDENCE",
    "RULE_LENGTH_BONUS_CAP",
    "CENTROID_CACHE_TTL",
    "CENTROID_MAX_ROWS",
    "STATISTICAL_ENABLED",
    "BATCH_LIMIT",
)


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) < 2:
        return raw_value
    if raw_value[0] == raw_value[-1] and raw_value[0] in {'"', "'"}:
        return raw_value[1:-1]
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` lines; comments and blank values are skipped."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            cleaned = raw_value.split(" #", 1)[0].strip()
            if not key or not cleaned:
                continue
            value = _unquote_value(cleaned)
            if value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    # Real environment variables win over the config file
    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def ensure_dir(path: str | None) -> None:
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


def get_env_float(
    name: str,
    default: float = 0.0,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
        logger.warning(
            "[ENV] %s='%s' outside [%s, %s], using default %s.",
            name,
            raw,
            min_value,
            max_value,
            default,
        )
        return default
    return value


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
    return default


_SENSITIVE_ENV_KEYS = (
    "KEY",
    "TOKEN",
    "SECRET",
    "PASSWORD",
    "PASS",
    "AUTH",
    "BEARER",
    "PRIVATE",
)


def _should_mask_env_value(name: str, value: str) -> bool:
    upper_name = name.upper()
    if any(marker in upper_name for marker in _SENSITIVE_ENV_KEYS):
        return True
    if value.startswith("sk-") or value.startswith("rk-"):
        return True
    if value.startswith("Bearer ") or value.startswith("bearer "):
        return True
    return False


def _mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    if not _should_mask_env_value(name, sanitized):
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    config_path = get_config_path()
    if config_path and os.path.exists(config_path):
        logger.info("[ENV] Config file: %s", config_path)
    else:
        logger.info("[ENV] Config file: <none>")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_ML_CONF_THRESHOLD = 0.35
DEFAULT_AI_CONFIDENCE = 0.8
DEFAULT_RULE_BASE_CONFIDENCE = 0.9
DEFAULT_RULE_LENGTH_BONUS_CAP = 0.09
DEFAULT_CENTROID_CACHE_TTL = 300.0
DEFAULT_CENTROID_MAX_ROWS = 10_000
DEFAULT_BATCH_LIMIT = 50


@dataclass(frozen=True)
class CategorizerConfig:
    threshold: float = DEFAULT_ML_CONF_THRESHOLD
    ai_confidence: float = DEFAULT_AI_CONFIDENCE
    rule_base_confidence: float = DEFAULT_RULE_BASE_CONFIDENCE
    rule_length_bonus_cap: float = DEFAULT_RULE_LENGTH_BONUS_CAP
    rule_length_bonus_divisor: float = 200.0
    centroid_cache_ttl: float = DEFAULT_CENTROID_CACHE_TTL
    centroid_max_rows: int = DEFAULT_CENTROID_MAX_ROWS
    statistical_enabled: bool = True
    batch_limit: int = DEFAULT_BATCH_LIMIT
    openai_api_key: str | None = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str | None = None

    @classmethod
    def from_env(cls) -> "CategorizerConfig":
        return cls(
            threshold=get_env_float("ML_CONF_THRESHOLD", DEFAULT_ML_CONF_THRESHOLD, 0.0, 1.0),
            ai_confidence=get_env_float("AI_CONFIDENCE", DEFAULT_AI_CONFIDENCE, 0.0, 1.0),
            rule_base_confidence=get_env_float(
                "RULE_BASE_CONFIDENCE", DEFAULT_RULE_BASE_CONFIDENCE, 0.0, 1.0
            ),
            rule_length_bonus_cap=get_env_float(
                "RULE_LENGTH_BONUS_CAP", DEFAULT_RULE_LENGTH_BONUS_CAP, 0.0, 1.0
            ),
            centroid_cache_ttl=get_env_float(
                "CENTROID_CACHE_TTL", DEFAULT_CENTROID_CACHE_TTL, min_value=0.0
            ),
            centroid_max_rows=get_env_int(
                "CENTROID_MAX_ROWS", DEFAULT_CENTROID_MAX_ROWS, min_value=1
            ),
            statistical_enabled=get_env_bool("STATISTICAL_ENABLED", True),
            batch_limit=get_env_int("BATCH_LIMIT", DEFAULT_BATCH_LIMIT, min_value=1),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        )


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")

ensure_dir(DATA_DIR)
ensure_dir(LOG_DIR)

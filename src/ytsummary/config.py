import logging
import os
import sys
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s"
)

# Maximum context size (in tokens) per model.
MODEL_CONTEXT_SIZES = {
    "gpt-3.5-turbo": 16385,
    "gpt-4": 8192,
    "gpt-4-32k": 32768,
    "gpt-4-turbo": 128000,
    "gpt-4o": 128000,
    "gpt-4o-mini": 128000,
    "gemini-1.5-flash": 1048576,
    "gemini-1.5-pro": 2097152,
    "gemini-2.0-flash": 1048576,
}
DEFAULT_CONTEXT_SIZE = 16385


def max_context_tokens(model: str) -> int:
    if model in MODEL_CONTEXT_SIZES:
        return MODEL_CONTEXT_SIZES[model]
    logger.warning(
        f"Unknown model '{model}', assuming a context size of {DEFAULT_CONTEXT_SIZE} tokens"
    )
    return DEFAULT_CONTEXT_SIZE


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {value!r}") from None


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {value!r}") from None


@dataclass
class Settings:
    """Runtime settings, read from the environment by :func:`load_settings`."""

    llm_provider: str = "openai"
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_model: str = "gpt-4-turbo"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-pro"
    youtube_api_key: str | None = None
    transcript_languages: list[str] = field(default_factory=lambda: ["en"])
    database_path: str = "yt_summary.db"
    rate_limit_requests: int = 2
    rate_limit_window_seconds: int = 60
    chunk_ratio: float = 0.7
    admin_api_keys: list[str] = field(default_factory=list)
    trust_proxy: bool = False
    log_level: str = "INFO"

    @property
    def model_name(self) -> str:
        if self.llm_provider.lower() == "gemini":
            return self.gemini_model
        return self.openai_model

    @property
    def chunk_size(self) -> int:
        """Token budget for the transcript sent to the model."""
        return int(max_context_tokens(self.model_name) * self.chunk_ratio)


def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True))
    defaults = Settings()
    return Settings(
        llm_provider=os.getenv("LLM_PROVIDER", defaults.llm_provider).lower(),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_base_url=os.getenv("OPENAI_BASE_URL"),
        openai_model=os.getenv("OPENAI_MODEL", defaults.openai_model),
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", defaults.gemini_model),
        youtube_api_key=os.getenv("YOUTUBE_API_KEY"),
        transcript_languages=_split_list(os.getenv("TRANSCRIPT_LANGUAGES"))
        or defaults.transcript_languages,
        database_path=os.getenv("YT_SUMMARY_DB", defaults.database_path),
        rate_limit_requests=_get_int("RATE_LIMIT_REQUESTS", defaults.rate_limit_requests),
        rate_limit_window_seconds=_get_int(
            "RATE_LIMIT_WINDOW", defaults.rate_limit_window_seconds
        ),
        chunk_ratio=_get_float("CHUNK_RATIO", defaults.chunk_ratio),
        admin_api_keys=_split_list(os.getenv("ADMIN_API_KEYS")),
        trust_proxy=os.getenv("TRUST_PROXY", "false").lower() in ("true", "1", "yes"),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the package logger (once)."""
    package_logger = logging.getLogger("ytsummary")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
    return package_logger

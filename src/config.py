"""
src/config.py
Environment-backed configuration for Roadboard.
Exports: Config, Settings
"""

from dataclasses import dataclass
import os


class Config:
    DEFAULT_GEMINI_MODEL = "gemini/gemini-2.5-flash"
    DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"
    DEFAULT_DB_PATH = "data/roadboard.db"

    @staticmethod
    def require_env(name: str) -> str:
        value = os.getenv(name, "").strip()
        if not value:
            raise RuntimeError(f"Missing required env var: {name}")
        return value

    @staticmethod
    def get_int(name: str, default: int, *, minimum: int = 0) -> int:
        raw_value = os.getenv(name, str(default)).strip()
        try:
            value = int(raw_value)
        except ValueError as exc:
            raise RuntimeError(f"Invalid {name}: expected an integer.") from exc
        if value < minimum:
            raise RuntimeError(f"Invalid {name}: expected an integer >= {minimum}.")
        return value

    @staticmethod
    def get_flag(name: str, default: bool = True) -> bool:
        value = os.getenv(name, "true" if default else "false").strip().lower()
        return value not in {"0", "false", "no", "off"}

    @staticmethod
    def get_gemini_model() -> str:
        return os.getenv("ROADBOARD_GEMINI_MODEL", Config.DEFAULT_GEMINI_MODEL)

    @staticmethod
    def get_github_token() -> str:
        return Config.require_env("GITHUB_TOKEN")

    @staticmethod
    def get_gemini_api_key() -> str:
        """Return GEMINI_API_KEY, with GOOGLE_API_KEY legacy fallback."""
        gemini_key = os.getenv("GEMINI_API_KEY", "").strip()
        if gemini_key:
            return gemini_key
        legacy_key = os.getenv("GOOGLE_API_KEY", "").strip()
        if legacy_key:
            return legacy_key
        raise RuntimeError("Missing required env var: GEMINI_API_KEY (or GOOGLE_API_KEY)")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration snapshot injected into the pipeline components."""

    db_path: str = Config.DEFAULT_DB_PATH
    graphql_url: str = Config.DEFAULT_GRAPHQL_URL
    project_org: str = "Azure"
    project_number: int = 685
    issues_repo: str = "Azure/AKS"
    model: str = Config.DEFAULT_GEMINI_MODEL
    snapshot_ttl_ms: int = 24 * 60 * 60 * 1000
    inference_ttl_ms: int = 24 * 60 * 60 * 1000
    failure_cooldown_ms: int = 60 * 1000
    roadmap_batch_size: int = 8
    issues_batch_size: int = 5
    roadmap_max_pages: int = 50
    issues_max_pages: int = 20
    comment_page_delay_seconds: float = 0.1
    retry_interval_seconds: int = 60
    retry_batch: int = 3
    retry_item_delay_seconds: float = 5.0
    retry_max_attempts: int = 10
    sweep_interval_seconds: int = 3600
    sweep_age_multiplier: int = 7
    progress_stream_seconds: int = 600
    background_enabled: bool = True

    @property
    def issues_owner(self) -> str:
        return self.issues_repo.split("/", 1)[0]

    @property
    def issues_name(self) -> str:
        owner, _, name = self.issues_repo.partition("/")
        if not name:
            raise RuntimeError("Invalid ROADBOARD_ISSUES_REPO: expected 'owner/name'.")
        return name

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ROADBOARD_* environment variables."""
        return cls(
            db_path=os.getenv("ROADBOARD_DB_PATH", Config.DEFAULT_DB_PATH),
            graphql_url=os.getenv("ROADBOARD_GITHUB_GRAPHQL_URL", Config.DEFAULT_GRAPHQL_URL),
            project_org=os.getenv("ROADBOARD_PROJECT_ORG", "Azure"),
            project_number=Config.get_int("ROADBOARD_PROJECT_NUMBER", 685, minimum=1),
            issues_repo=os.getenv("ROADBOARD_ISSUES_REPO", "Azure/AKS"),
            model=Config.get_gemini_model(),
            snapshot_ttl_ms=Config.get_int("ROADBOARD_SNAPSHOT_TTL_SECONDS", 86400, minimum=1) * 1000,
            inference_ttl_ms=Config.get_int("ROADBOARD_INFERENCE_TTL_SECONDS", 86400, minimum=1) * 1000,
            failure_cooldown_ms=Config.get_int("ROADBOARD_FAILURE_COOLDOWN_SECONDS", 60) * 1000,
            roadmap_batch_size=Config.get_int("ROADBOARD_ROADMAP_BATCH_SIZE", 8, minimum=1),
            issues_batch_size=Config.get_int("ROADBOARD_ISSUES_BATCH_SIZE", 5, minimum=1),
            retry_interval_seconds=Config.get_int("ROADBOARD_RETRY_INTERVAL_SECONDS", 60, minimum=1),
            retry_batch=Config.get_int("ROADBOARD_RETRY_BATCH", 3, minimum=1),
            retry_item_delay_seconds=float(Config.get_int("ROADBOARD_RETRY_ITEM_DELAY_SECONDS", 5)),
            retry_max_attempts=Config.get_int("ROADBOARD_RETRY_MAX_ATTEMPTS", 10, minimum=1),
            sweep_interval_seconds=Config.get_int("ROADBOARD_SWEEP_INTERVAL_SECONDS", 3600, minimum=1),
            sweep_age_multiplier=Config.get_int("ROADBOARD_SWEEP_AGE_MULTIPLIER", 7, minimum=1),
            progress_stream_seconds=Config.get_int("ROADBOARD_PROGRESS_STREAM_SECONDS", 600, minimum=1),
            background_enabled=Config.get_flag("ROADBOARD_BACKGROUND_ENABLED"),
        )

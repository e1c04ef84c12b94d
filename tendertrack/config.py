"""
Configuration management for tendertrack.

Loads configuration from config.yaml, .env file, and environment variables.
Priority: Environment variables > .env file > config.yaml
"""

import os
from pathlib import Path
from typing import Any

import yaml

# Load .env file if it exists (before reading os.environ)
def _load_dotenv():
    """Load .env file from project root."""
    current = Path.cwd()
    for path in [current] + list(current.parents):
        env_path = path / ".env"
        if env_path.exists():
            with open(env_path) as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, _, value = line.partition("=")
                        key = key.strip()
                        value = value.strip().strip('"').strip("'")
                        # Only set if not already in environment
                        if key not in os.environ:
                            os.environ[key] = value
            break

_load_dotenv()


DEFAULT_SCORING_KEYWORDS = [
    "software", "it", "technology", "digital", "system", "web", "mobile",
]


class Config:
    """Application configuration singleton."""

    _instance = None
    _config: dict = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_config()
        return cls._instance

    def _find_config_file(self) -> Path | None:
        """Find config.yaml in current directory or parent directories."""
        current = Path.cwd()
        for path in [current] + list(current.parents):
            config_path = path / "config.yaml"
            if config_path.exists():
                return config_path
        return None

    def _load_config(self) -> None:
        """Load configuration from file and environment."""
        config_path = self._find_config_file()

        if config_path:
            with open(config_path) as f:
                self._config = yaml.safe_load(f) or {}
        else:
            self._config = {}

        # Apply environment variable overrides
        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        """Override config values with environment variables."""
        env_mappings = {
            "TENDERTRACK_DB_URL": ("database", "url"),
            "TENDERTRACK_DB_HOST": ("database", "host"),
            "TENDERTRACK_DB_PORT": ("database", "port"),
            "TENDERTRACK_DB_NAME": ("database", "name"),
            "TENDERTRACK_DB_USER": ("database", "user"),
            "TENDERTRACK_DB_PASSWORD": ("database", "password"),
            "TENDERTRACK_COMPANY": ("tracked_company", "aliases"),
            "TENDERTRACK_LOG_LEVEL": ("logging", "level"),
        }

        for env_var, path in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                self._set_nested(path, value)

    def _set_nested(self, path: tuple, value: Any) -> None:
        """Set a nested config value."""
        current = self._config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        # Type conversion for known non-string fields
        if path[-1] == "port":
            value = int(value)
        elif path[-1] == "aliases" and isinstance(value, str):
            value = [v.strip() for v in value.split(",") if v.strip()]

        current[path[-1]] = value

    def _get_nested(self, path: tuple, default: Any = None) -> Any:
        """Get a nested config value."""
        current = self._config
        for key in path:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current

    @property
    def database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        db = self._config.get("database", {})
        if db.get("url"):
            return db["url"]

        host = db.get("host", "localhost")
        port = db.get("port", 5432)
        name = db.get("name", "tendertrack")
        user = db.get("user", "postgres")
        password = db.get("password", "")

        # Handle Unix socket paths (start with /)
        if host.startswith("/"):
            if password:
                return f"postgresql://{user}:{password}@/{name}?host={host}"
            return f"postgresql://{user}@/{name}?host={host}"

        if password:
            return f"postgresql://{user}:{password}@{host}:{port}/{name}"
        return f"postgresql://{user}@{host}:{port}/{name}"

    @property
    def tracked_company_aliases(self) -> list[str]:
        """Names under which the tracked company appears in result sheets."""
        aliases = self._get_nested(("tracked_company", "aliases"), ["appentus"])
        if isinstance(aliases, str):
            aliases = [aliases]
        return [a for a in aliases if a]

    @property
    def currency_scale(self) -> int:
        """Minor units per major currency unit (100 = paise)."""
        return int(self._get_nested(("ingestion", "currency_scale"), 100))

    @property
    def date_dayfirst(self) -> bool:
        """Read ambiguous dates such as 03/04/2025 as day-first."""
        return bool(self._get_nested(("ingestion", "date_dayfirst"), True))

    @property
    def default_deadline_days(self) -> int:
        """Days from now used when a tender row has no usable deadline."""
        return int(self._get_nested(("ingestion", "default_deadline_days"), 30))

    @property
    def progress_interval(self) -> int:
        """Rows between progress callbacks."""
        return max(1, int(self._get_nested(("ingestion", "progress_interval"), 10)))

    @property
    def min_title_length(self) -> int:
        """Rows with a shorter title are skipped."""
        return max(1, int(self._get_nested(("ingestion", "min_title_length"), 1)))

    @property
    def header_synonyms(self) -> dict:
        """Per-kind synonym overrides, e.g. {"tenders": {"title": [...]}}."""
        return self._get_nested(("ingestion", "synonyms"), {}) or {}

    @property
    def scoring(self) -> dict:
        """Keyword AI-score settings."""
        scoring = {
            "base": 50,
            "step": 10,
            "cap": 85,
            "keywords": DEFAULT_SCORING_KEYWORDS,
        }
        scoring.update(self._get_nested(("scoring",), {}) or {})
        return scoring

    @property
    def sweep_interval_hours(self) -> int:
        """Get missed-opportunity sweep interval in hours."""
        return int(self._get_nested(("lifecycle", "sweep_interval_hours"), 24))

    @property
    def sweep_after_ingest(self) -> bool:
        """Run the missed-opportunity sweep after each tender upload."""
        return bool(self._get_nested(("lifecycle", "sweep_after_ingest"), True))

    @property
    def log_level(self) -> str:
        """Get logging level name."""
        return str(self._get_nested(("logging", "level"), "INFO")).upper()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def get(self, *path: str, default: Any = None) -> Any:
        """Get a config value by path."""
        return self._get_nested(path, default)


# Global config instance
config = Config()

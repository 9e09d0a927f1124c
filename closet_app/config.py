"""Configuration helpers for the Closet pipeline."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass
class ClosetConfig:
    """Configuration values for the Closet app and trusted server.

    ``backend`` selects between the hosted Supabase project and the local
    SQLite/filesystem stand-ins used for offline runs.
    """

    backend: str = "local"
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_key: Optional[str] = None
    items_table: str = "wardrobe"
    storage_bucket: str = "wardrobe"
    api_base_url: str = "http://localhost:8080"
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    analysis_cache_path: str = "data/analysis_cache.json"
    analysis_cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    analysis_cache_max_entries: Optional[int] = 500
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    local_db_path: str = "data/wardrobe.db"
    local_storage_dir: str = "data/storage"
    local_storage_base_url: str = "http://localhost:8080/storage"
    request_timeout_seconds: Optional[float] = None
    local_user_id: str = "local-user"
    local_access_token: str = "local-token"
    environment: str | None = None

    @classmethod
    def from_env(cls) -> "ClosetConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that secrets such as
        the Supabase service key never need to be written to disk.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("CLOSET_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        max_entries = get_value("analysis_cache_max_entries", "500")
        timeout = get_value("request_timeout_seconds")

        return cls(
            backend=str(get_value("closet_backend", "local") or "local"),
            supabase_url=get_value("supabase_url"),
            supabase_anon_key=get_value("supabase_anon_key"),
            supabase_service_key=get_value("supabase_service_key"),
            items_table=str(get_value("items_table", "wardrobe") or "wardrobe"),
            storage_bucket=str(get_value("storage_bucket", "wardrobe") or "wardrobe"),
            api_base_url=str(get_value("api_base_url", "http://localhost:8080")),
            gemini_api_key=get_value("gemini_api_key"),
            gemini_model=str(get_value("gemini_model", DEFAULT_GEMINI_MODEL) or DEFAULT_GEMINI_MODEL),
            analysis_cache_path=str(get_value("analysis_cache_path", "data/analysis_cache.json")),
            analysis_cache_ttl_seconds=float(
                get_value("analysis_cache_ttl_seconds", str(DEFAULT_CACHE_TTL_SECONDS))
                or DEFAULT_CACHE_TTL_SECONDS
            ),
            analysis_cache_max_entries=int(max_entries) if max_entries else None,
            max_upload_bytes=int(
                get_value("max_upload_bytes", str(DEFAULT_MAX_UPLOAD_BYTES)) or DEFAULT_MAX_UPLOAD_BYTES
            ),
            local_db_path=str(get_value("local_db_path", "data/wardrobe.db")),
            local_storage_dir=str(get_value("local_storage_dir", "data/storage")),
            local_storage_base_url=str(
                get_value("local_storage_base_url", "http://localhost:8080/storage")
            ),
            request_timeout_seconds=float(timeout) if timeout else None,
            local_user_id=str(get_value("local_user_id", "local-user")),
            local_access_token=str(get_value("local_access_token", "local-token")),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config

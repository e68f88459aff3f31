from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "BRT Journey Planner API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    # CORS: "*" for dev; in production set to comma-separated origins, e.g. "https://app.example.com,https://admin.example.com"
    cors_origins: str = "*"
    network_data_path: str = "data/bus_routes.json"  # Path relative to backend root, or absolute

    # Optional API key auth (for production / multi-tenant). When enabled, requests must include X-API-Key or Authorization: Bearer <key>.
    api_key_required: bool = False
    api_keys: str = ""  # Comma-separated list of valid keys (no spaces). Example: API_KEYS=key1,key2

    # Directions provider (Mapbox). Empty token -> every leg uses local distance estimates.
    mapbox_access_token: str = ""
    mapbox_base_url: str = "https://api.mapbox.com"
    directions_timeout_seconds: float = 20.0
    directions_max_retries: int = 2  # 5xx/timeouts only; 4xx never retried
    directions_retry_backoff_seconds: float = 0.5
    directions_budget_per_minute: int = 30  # process-wide cap on paid calls
    directions_cache_ttl_seconds: int = 300

    # Planner
    candidate_top_k: int = 3
    exact_stop_search_radius_m: float = 1000.0
    nearest_stop_search_radius_m: float = 10_000.0
    exact_stop_threshold_m: float = 200.0
    road_network_factor: float = 1.2
    walk_threshold_m: float = 500.0
    rickshaw_threshold_m: float = 2000.0

    # Per-client limit on POST /journey (slowapi syntax)
    journey_rate_limit: str = "20/minute"


def get_settings() -> Settings:
    return Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    openrouter_model: str = ""
    planner_model: str = ""  # optional override for query planning only
    llm_timeout_seconds: float = 60.0

    # Search provider
    search_provider: str = "tavily"  # tavily | duckduckgo
    tavily_api_key: str = ""
    search_fallback_to_duckduckgo: bool = True
    search_timeout_seconds: float = 30.0
    search_cache_ttl_seconds: int = 240

    # Page fetching / enrichment
    page_fetch_timeout_seconds: float = 8.0
    page_content_max_chars: int = 4000
    page_content_cache_ttl_seconds: int = 720
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Research run
    research_cache_ttl_seconds: int = 600
    image_fetch_timeout_seconds: float = 7.0
    image_fetch_concurrency: int = 3
    max_images: int = 4
    thumbnail_base_url: str = "https://image.thum.io/get"

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"
    log_to_file: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()

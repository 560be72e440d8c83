import os

from pydantic_settings import BaseSettings

LITELLM_PRICES_URL = (
    "https://raw.githubusercontent.com/BerriAI/litellm/main/model_prices_and_context_window.json"
)


class Settings(BaseSettings):
    # Data
    data_dir: str = "~/.ccem"
    claude_projects_dir: str = "~/.claude/projects"

    # Prices
    prices_url: str = LITELLM_PRICES_URL
    price_fetch_timeout_seconds: float = 1.0

    # Parsing
    parse_concurrency: int = 5

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8765

    model_config = {"env_file": ".env", "env_prefix": "CCEM_", "extra": "ignore"}

    @property
    def data_path(self) -> str:
        return os.path.expanduser(self.data_dir)

    @property
    def projects_path(self) -> str:
        return os.path.expanduser(self.claude_projects_dir)

    @property
    def cache_path(self) -> str:
        return os.path.join(self.data_path, "usage-cache.json")

    @property
    def prices_path(self) -> str:
        return os.path.join(self.data_path, "model-prices.json")

    @property
    def bundled_prices_path(self) -> str:
        return os.path.join(os.path.dirname(__file__), "data", "model-prices.json")


settings = Settings()

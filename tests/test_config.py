import os

from ccem.config import LITELLM_PRICES_URL, Settings


class TestSettings:
    def test_paths_derive_from_data_dir(self, tmp_path):
        s = Settings(data_dir=str(tmp_path))
        assert s.cache_path == os.path.join(str(tmp_path), "usage-cache.json")
        assert s.prices_path == os.path.join(str(tmp_path), "model-prices.json")

    def test_home_is_expanded(self):
        s = Settings(data_dir="~/.ccem-test")
        assert s.data_path == os.path.expanduser("~/.ccem-test")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CCEM_PARSE_CONCURRENCY", "3")
        monkeypatch.setenv("CCEM_PRICE_FETCH_TIMEOUT_SECONDS", "0.5")
        s = Settings()
        assert s.parse_concurrency == 3
        assert s.price_fetch_timeout_seconds == 0.5

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CCEM_PRICES_URL", raising=False)
        s = Settings()
        assert s.prices_url == LITELLM_PRICES_URL
        assert s.parse_concurrency == 5
        assert s.bundled_prices_path.endswith(os.path.join("ccem", "data", "model-prices.json"))

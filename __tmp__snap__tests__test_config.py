"""Tests for environment-driven configuration."""

from confirmd.config import DEFAULT_FEEDS, PipelineConfig, load_config


def test_defaults_run_in_simulation_mode():
    config = PipelineConfig()
    assert config.simulation_mode
    assert config.search_provider == "duckduckgo"
    assert len(config.feeds) == len(DEFAULT_FEEDS)
    assert config.credibility_bands.high == 0.7


def test_load_config_reads_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("CONFIRMD_SEARCH_PROVIDER", "Wikipedia")
    monkeypatch.setenv("WEB_SEARCH_ENABLED", "false")
    monkeypatch.setenv("CONFIRMD_MAX_CONCURRENCY", "0")
    monkeypatch.setenv("CONFIRMD_PIPELINE_INTERVAL_HOURS", "6")
    monkeypatch.setenv("CONFIRMD_WATCHLIST", "btc, eth,,")

    config = load_config()

    assert not config.simulation_mode
    assert config.search_provider == "wikipedia"
    assert config.web_search_enabled is False
    assert config.max_concurrency == 1
    assert config.pipeline_interval_hours == 6.0
    assert config.deep_verify.watchlist == ["BTC", "ETH"]


def test_load_config_ignores_bad_numbers(monkeypatch):
    monkeypatch.setenv("CONFIRMD_FETCH_TIMEOUT", "soon")
    assert load_config().fetch_timeout == 10.0


"""Tests for the service container."""

import pytest

from confirmd.infrastructure.dependencies import ServiceContainer

from conftest import FakeFeedReader, FakeFetcher, FakeLanguageModel, FakeSearch


def _container(config, **overrides) -> ServiceContainer:
    overrides.setdefault("feed_reader", FakeFeedReader())
    overrides.setdefault("fetcher", FakeFetcher())
    return ServiceContainer(config=config, **overrides)


@pytest.mark.asyncio
async def test_simulation_mode_uses_deterministic_strategies(config):
    container = _container(config)

    with pytest.raises(KeyError):
        container.get_pipeline()
    await container.initialize()

    assert container.is_initialized
    assert container.language_model_name is None
    assert container.search_provider_name is None
    assert container.get_verdict_synthesizer().strategy_name == "simulation"
    assert (await container.get_storage().get_pipeline_stats()).total_sources == 0


@pytest.mark.asyncio
async def test_language_model_selects_model_strategies(config):
    container = _container(config, language_model=FakeLanguageModel(), search=FakeSearch())
    await container.initialize()

    assert container.language_model_name == "fake-model"
    assert container.search_provider_name == "Fake"
    assert container.get_verdict_synthesizer().strategy_name.endswith("fake-model")


@pytest.mark.asyncio
async def test_seeding_happens_once_into_an_empty_store(config):
    container = _container(config.model_copy(update={"seed_data": True}))

    await container.initialize()
    await container.initialize()

    stats = await container.get_storage().get_pipeline_stats()
    assert stats.total_sources == 13
    assert stats.total_stories == 5


@pytest.mark.asyncio
async def test_unknown_search_provider_falls_back_to_none(config):
    container = _container(config.model_copy(update={"search_provider": "altavista"}))
    await container.initialize()
    assert container.search_provider_name is None


@pytest.mark.asyncio
async def test_shutdown_releases_clients(config):
    reader, fetcher = FakeFeedReader(), FakeFetcher()
    container = _container(config, feed_reader=reader, fetcher=fetcher)
    await container.initialize()
    container.get_pipeline().start_scheduler(interval_hours=1)

    await container.shutdown()

    assert reader.closed and fetcher.closed
    assert container.get_pipeline().get_status().scheduler_active is False



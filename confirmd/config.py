"""Configuration for the verification pipeline."""

import logging
import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .domain.models.evidence import EvidenceGrade
from .domain.ports.feed_reader import FeedKind, FeedSource

logger = logging.getLogger(__name__)

DEFAULT_FEEDS: List[FeedSource] = [
    FeedSource(name="CoinDesk", url="https://www.coindesk.com/arc/outboundfeeds/rss/", domain="coindesk.com"),
    FeedSource(name="The Block", url="https://www.theblock.co/rss/all", domain="theblock.co"),
    FeedSource(name="Decrypt", url="https://decrypt.co/feed", domain="decrypt.co"),
    FeedSource(name="CoinTelegraph", url="https://cointelegraph.com/rss", domain="cointelegraph.com"),
    FeedSource(name="Bitcoin Magazine", url="https://bitcoinmagazine.com/feed", domain="bitcoinmagazine.com"),
    FeedSource(name="CryptoSlate", url="https://cryptoslate.com/feed/", domain="cryptoslate.com"),
    FeedSource(name="The Defiant", url="https://thedefiant.io/feed", domain="thedefiant.io"),
    FeedSource(name="Blockworks", url="https://blockworks.co/feed", domain="blockworks.co"),
    FeedSource(name="DL News", url="https://www.dlnews.com/rss/", domain="dlnews.com"),
    FeedSource(name="Unchained", url="https://unchainedcrypto.com/feed/", domain="unchainedcrypto.com"),
]

# Creator channels, read as transcripts when YouTube ingestion is enabled
DEFAULT_YOUTUBE_CHANNELS: List[FeedSource] = [
    FeedSource(name=name, url=f"https://www.youtube.com/@{handle}", domain=f"youtube.com/@{handle}", kind=FeedKind.YOUTUBE)
    for name, handle in [
        ("Bearable Bull", "TheBearableBull"),
        ("Digital Asset Investor", "DigitalAssetInvestor"),
        ("Blockchain Backer", "BlockchainBacker"),
        ("Crypto Eri", "CryptoEri"),
        ("Digital Perspectives", "DigitalPerspectives"),
        ("Alex Cobb", "AlexCobb"),
    ]
]


class LabelBand(BaseModel):
    """Linear rule for one verdict label: value = base + slope * driver."""

    probability_base: float
    probability_slope: float
    strength_base: float
    strength_slope: float


class VerdictBands(BaseModel):
    """Policy constants for deterministic verdict synthesis.

    Probability slopes are driven by the support ratio, strength slopes
    by the grade-weighted evidence quality.
    """

    grade_weights: Dict[EvidenceGrade, float] = Field(
        default_factory=lambda: {
            EvidenceGrade.A: 4.0,
            EvidenceGrade.B: 3.0,
            EvidenceGrade.C: 2.0,
            EvidenceGrade.D: 1.0,
        }
    )
    misleading_contradict_ratio: float = Field(0.3, description="Contradicting share above which A/B contradiction is misleading")
    verified_support_ratio: float = Field(0.5, description="Supporting share above which A/B support is verified")
    plausible_support_ratio: float = Field(0.3, description="Supporting share above which the claim is plausible")
    misleading: LabelBand = LabelBand(
        probability_base=0.1, probability_slope=0.2, strength_base=0.7, strength_slope=0.2
    )
    verified: LabelBand = LabelBand(
        probability_base=0.8, probability_slope=0.15, strength_base=0.8, strength_slope=0.15
    )
    plausible_unverified: LabelBand = LabelBand(
        probability_base=0.5, probability_slope=0.25, strength_base=0.5, strength_slope=0.3
    )
    speculative: LabelBand = LabelBand(
        probability_base=0.3, probability_slope=0.2, strength_base=0.2, strength_slope=0.3
    )

    @property
    def max_grade_weight(self) -> float:
        return max(self.grade_weights.values())


class CredibilityBands(BaseModel):
    """Probability thresholds for story credibility distributions."""

    high: float = Field(0.7, description="Probability at or above which a claim is high credibility")
    low: float = Field(0.3, description="Probability below which a claim is low credibility")


class DeepVerifyConfig(BaseModel):
    """Settings for deep verification and re-verification."""

    max_claims_per_batch: int = 10
    max_reverify_claims: int = 5
    redeep_after_days: float = 7.0
    reverify_stale_days: float = 3.0
    reverify_max_age_days: float = 30.0
    deadline_window_days: float = 3.0
    results_per_query: int = 5
    watchlist: List[str] = Field(default_factory=list, description="Assets that get a priority bonus")


class YouTubeConfig(BaseModel):
    """Settings for creator channel transcript ingestion."""

    enabled: bool = Field(False, description="Adds the YouTube channels to the feeds; needs the yt-dlp executable")
    channels: List[FeedSource] = Field(default_factory=lambda: list(DEFAULT_YOUTUBE_CHANNELS))
    max_videos: int = Field(5, ge=1, description="Newest uploads considered per channel")
    transcript_timeout: float = Field(60.0, description="yt-dlp timeout per video in seconds")
    cookies_file: Optional[str] = None
    cookies_from_browser: Optional[str] = None


class PipelineConfig(BaseModel):
    """Top-level configuration assembled from the environment."""

    openai_api_key: Optional[str] = Field(None, description="Enables language-model strategies")
    model: str = Field("gpt-4o-mini", description="Language model name")
    search_provider: str = Field("duckduckgo", description="duckduckgo, wikipedia or none")
    web_search_enabled: bool = True
    web_search_max_results: int = 5
    fetch_timeout: float = Field(10.0, description="Evidence URL fetch timeout in seconds")
    feed_timeout: float = Field(15.0, description="Feed fetch timeout in seconds")
    verify_evidence_reachability: bool = True
    max_items_per_run: int = 30
    max_concurrency: int = Field(4, ge=1, description="Bounded fan-out for sources and items")
    pipeline_interval_hours: float = 24.0
    run_on_startup: bool = False
    auto_resolve: bool = True
    seed_data: bool = True
    feeds: List[FeedSource] = Field(default_factory=lambda: list(DEFAULT_FEEDS))
    verdict_bands: VerdictBands = Field(default_factory=VerdictBands)
    credibility_bands: CredibilityBands = Field(default_factory=CredibilityBands)
    deep_verify: DeepVerifyConfig = Field(default_factory=DeepVerifyConfig)
    youtube: YouTubeConfig = Field(default_factory=YouTubeConfig)

    @property
    def simulation_mode(self) -> bool:
        return not self.openai_api_key


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("false", "0", "no", "off", "")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"⚠️ Ignoring non-numeric {name}={value!r}")
        return default


def load_config() -> PipelineConfig:
    """Build configuration from environment variables (and a .env file if present)."""
    load_dotenv()

    watchlist = [
        symbol.strip().upper()
        for symbol in os.getenv("CONFIRMD_WATCHLIST", "").split(",")
        if symbol.strip()
    ]

    config = PipelineConfig(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        model=os.getenv("CONFIRMD_MODEL", "gpt-4o-mini"),
        search_provider=os.getenv("CONFIRMD_SEARCH_PROVIDER", "duckduckgo").lower(),
        web_search_enabled=_env_bool("WEB_SEARCH_ENABLED", True),
        web_search_max_results=int(_env_float("WEB_SEARCH_MAX_RESULTS", 5)),
        fetch_timeout=_env_float("CONFIRMD_FETCH_TIMEOUT", 10.0),
        feed_timeout=_env_float("CONFIRMD_FEED_TIMEOUT", 15.0),
        max_items_per_run=int(_env_float("CONFIRMD_MAX_ITEMS_PER_RUN", 30)),
        max_concurrency=max(1, int(_env_float("CONFIRMD_MAX_CONCURRENCY", 4))),
        pipeline_interval_hours=_env_float("CONFIRMD_PIPELINE_INTERVAL_HOURS", 24.0),
        run_on_startup=_env_bool("CONFIRMD_RUN_ON_STARTUP", False),
        seed_data=_env_bool("CONFIRMD_SEED_DATA", True),
        deep_verify=DeepVerifyConfig(watchlist=watchlist),
        youtube=YouTubeConfig(
            enabled=_env_bool("CONFIRMD_YOUTUBE_ENABLED", False),
            max_videos=max(1, int(_env_float("CONFIRMD_YOUTUBE_MAX_VIDEOS", 5))),
            transcript_timeout=_env_float("CONFIRMD_YOUTUBE_TRANSCRIPT_TIMEOUT", 60.0),
            cookies_file=os.getenv("YT_DLP_COOKIES_FILE") or None,
            cookies_from_browser=os.getenv("YT_DLP_COOKIES_FROM_BROWSER") or None,
        ),
    )
    if config.youtube.enabled:
        config.feeds.extend(config.youtube.channels)
        logger.info(f"🎬 YouTube ingestion enabled for {len(config.youtube.channels)} channels")

    mode = "simulation" if config.simulation_mode else f"language model ({config.model})"
    logger.info(f"🔧 Configuration loaded: mode={mode}, search={config.search_provider}")
    return config

"""Fixture data for demos and tests.

Seeds the registry of known sources with reliability scores plus six
reviewed claims covering the main verdict labels, with their evidence,
verdicts, resolutions and stories. Dates are relative to ``now`` so that
scheduled claims stay open after seeding.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ...domain.models.claim import Claim, ClaimStatus, ClaimType, ResolutionType
from ...domain.models.evidence import EvidenceGrade, EvidenceItem, EvidenceStance
from ...domain.models.item import Item, ItemKind
from ...domain.models.resolution import Resolution, ResolutionOutcome
from ...domain.models.source import ConfidenceInterval, Source, SourceScore, SourceType
from ...domain.models.story import Story
from ...domain.models.verdict import Verdict, VerdictLabel
from ...domain.ports.storage import StorageProvider
from ...domain.services.content_normalizer import compute_fingerprint, normalize_text
from ...domain.services.story_grouper import STORY_CATEGORY, story_image_url, story_summary

logger = logging.getLogger(__name__)

SEED_MODEL = "seed"
SEED_PROMPT_VERSION = "seed-v1.0.0"
SEED_SCORE_VERSION = "seed-v1.0"


def _logo(domain: str) -> str:
    return f"https://www.google.com/s2/favicons?domain={domain}&sz=128"


# key, type, handle, display name, logo domain, description, (track, discipline, n, ci_low, ci_high)
SEED_SOURCES = [
    ("sec", SourceType.REGULATOR, "sec.gov", "SEC", "sec.gov",
     "U.S. Securities and Exchange Commission", (98, 99, 45, 95, 100)),
    ("reuters", SourceType.PUBLISHER, "reuters.com", "Reuters", "reuters.com",
     "Global news wire service", (91, 94, 203, 88, 94)),
    ("bloomberg", SourceType.PUBLISHER, "bloomberg.com", "Bloomberg Crypto", "bloomberg.com",
     "Bloomberg digital asset coverage", (89, 92, 156, 85, 93)),
    ("theblock", SourceType.PUBLISHER, "theblock.co", "The Block", "theblock.co",
     "Crypto research and journalism", (82, 85, 189, 78, 86)),
    ("coindesk", SourceType.PUBLISHER, "coindesk.com", "CoinDesk", "coindesk.com",
     "Crypto news and media", (76, 78, 234, 72, 80)),
    ("cointelegraph", SourceType.PUBLISHER, "cointelegraph.com", "Cointelegraph", "cointelegraph.com",
     "Crypto and blockchain media", (58, 52, 312, 54, 62)),
    ("cryptowhale", SourceType.X_HANDLE, "@CryptoWhale", "Crypto Whale", "x.com",
     "Anonymous crypto Twitter personality", (34, 22, 89, 28, 40)),
    ("defialpha", SourceType.TELEGRAM, "t.me/defialpha", "DeFi Alpha Leaks", "telegram.org",
     "Anonymous DeFi alpha Telegram channel", (28, 18, 67, 20, 36)),
    ("cryptoslate", SourceType.PUBLISHER, "cryptoslate.com", "CryptoSlate", "cryptoslate.com",
     "Crypto news and data", (68, 72, 150, 64, 72)),
    ("thedefiant", SourceType.PUBLISHER, "thedefiant.io", "The Defiant", "thedefiant.io",
     "DeFi news and analysis", (75, 78, 120, 71, 79)),
    ("blockworks", SourceType.PUBLISHER, "blockworks.co", "Blockworks", "blockworks.co",
     "Crypto and blockchain news", (80, 82, 140, 76, 84)),
    ("dlnews", SourceType.PUBLISHER, "dlnews.com", "DL News", "dlnews.com",
     "Digital asset news", (74, 76, 100, 70, 78)),
    ("unchained", SourceType.PUBLISHER, "unchainedcrypto.com", "Unchained", "unchainedcrypto.com",
     "Crypto news and podcasts", (78, 80, 110, 74, 82)),
]

_S, _C, _M = EvidenceStance.SUPPORTS, EvidenceStance.CONTRADICTS, EvidenceStance.MENTIONS
_A, _B, _CG, _D = EvidenceGrade.A, EvidenceGrade.B, EvidenceGrade.C, EvidenceGrade.D

# Offsets are hours relative to the seeding time.
SEED_CLAIMS: List[Dict[str, Any]] = [
    {
        "source": "bloomberg",
        "item_url": "https://www.bloomberg.com/crypto/sec-ethereum-etf-meeting",
        "item_title": "SEC Schedules Meeting on Spot Ethereum ETF Applications",
        "item_text": "The Securities and Exchange Commission has put a meeting on its calendar to discuss "
                     "pending spot Ethereum ETF applications, according to the agency's public schedule.",
        "claim_text": "The SEC has scheduled a meeting to discuss spot Ethereum ETF applications",
        "claim_type": ClaimType.FILING_APPROVED_OR_DENIED,
        "assets": ["ETH"],
        "asserted": -72, "resolve_by": 27 * 24,
        "resolution_type": ResolutionType.SCHEDULED,
        "falsifiability": 0.95, "confidence": 0.82,
        "status": ClaimStatus.REVIEWED,
        "verdict": (VerdictLabel.VERIFIED, 0.91, 0.88,
                    "SEC public calendar confirms the scheduled meeting. Multiple institutional sources "
                    "corroborate the timeline. Primary evidence directly supports this claim.",
                    "SEC announcement of postponement or cancellation would invalidate this verdict."),
        "evidence": [
            ("https://www.sec.gov/news/upcoming-events", "SEC", _A, _S,
             "Commission meeting scheduled to discuss pending ETF applications."),
            ("https://www.bloomberg.com/news/ethereum-etf-timeline", "Bloomberg", _B, _S,
             "Sources familiar with the matter confirm SEC readiness to evaluate applications."),
            ("https://www.theblock.co/post/ethereum-etf-analysis", "The Block", _B, _S,
             "Industry insiders expect a decision within the scheduled window based on regulatory signals."),
            ("https://www.reuters.com/technology/sec-weigh-spot-ether-etfs", "Reuters", _B, _S,
             "The SEC will weigh spot ether ETF applications at its upcoming meeting, officials said."),
            ("https://www.coindesk.com/policy/ether-etf-watch", "CoinDesk", _CG, _M,
             "Ether ETF applicants await the regulator's next steps as the review continues."),
        ],
    },
    {
        "source": "cryptowhale",
        "item_url": "https://x.com/CryptoWhale/status/1747000000000000000",
        "item_title": "ETH ETF approval THIS WEEK says insider",
        "item_text": "ETH ETF will be approved THIS WEEK. My insider source confirms the announcement is imminent.",
        "claim_text": "ETH ETF will be approved THIS WEEK, insider source confirms imminent announcement",
        "claim_type": ClaimType.FILING_APPROVED_OR_DENIED,
        "assets": ["ETH"],
        "asserted": -70, "resolve_by": 4 * 24,
        "resolution_type": ResolutionType.SCHEDULED,
        "falsifiability": 0.85, "confidence": 0.25,
        "status": ClaimStatus.REVIEWED,
        "verdict": (VerdictLabel.SPECULATIVE, 0.18, 0.22,
                    "No primary source evidence supports this accelerated timeline. SEC communications "
                    "indicate no imminent decision. Anonymous claim with no corroborating evidence.",
                    "Official SEC announcement of approval within the claimed timeframe."),
        "evidence": [
            ("https://x.com/CryptoWhale/status/1747000000000000001", "Crypto Whale", _D, _S,
             "My source confirms approval coming this week. Trust me on this one."),
            ("https://www.sec.gov/news/statement/etf-applications", "SEC", _A, _C,
             "The Commission has not set a definitive timeline for ETF application decisions."),
            ("https://www.coindesk.com/markets/ether-etf-not-this-week", "CoinDesk", _CG, _C,
             "Analysts see little chance of an ether ETF decision this week despite social media chatter."),
            ("https://cointelegraph.com/news/eth-etf-rumors", "Cointelegraph", _CG, _M,
             "Rumors of an imminent ETH ETF approval circulated on social media on Monday."),
        ],
    },
    {
        "source": "theblock",
        "item_url": "https://www.theblock.co/post/nexus-protocol-exploit",
        "item_title": "Nexus Protocol Exploited for $45 Million",
        "item_text": "Nexus Protocol lost approximately $45 million after an attacker used a reentrancy "
                     "vulnerability in its withdraw function, security researchers said.",
        "claim_text": "Nexus Protocol lost approximately $45 million in a smart contract exploit via reentrancy vulnerability",
        "claim_type": ClaimType.EXPLOIT_OR_HACK,
        "assets": ["NEXUS", "ETH"],
        "asserted": -78, "resolve_by": None,
        "resolution_type": ResolutionType.IMMEDIATE,
        "falsifiability": 0.98, "confidence": 0.95,
        "status": ClaimStatus.RESOLVED,
        "verdict": (VerdictLabel.VERIFIED, 0.97, 0.95,
                    "On-chain transaction data confirms fund movement from protocol contracts. Official team "
                    "acknowledgment. Security researchers independently verified the reentrancy attack vector.",
                    "Protocol clarification that funds are safe or evidence of transaction reversal."),
        "evidence": [
            ("https://etherscan.io/tx/0xabc123", "Etherscan", _A, _S,
             "Transaction shows transfer of 15,000 ETH from Nexus contract to unknown wallet in single block."),
            ("https://x.com/NexusProtocol/status/1746900000000000000", "Nexus Protocol", _A, _S,
             "We are aware of a security incident affecting our smart contracts. Investigation ongoing."),
            ("https://www.theblock.co/post/nexus-reentrancy", "The Block", _B, _S,
             "PeckShield confirms the exploit used a classic reentrancy vulnerability in the withdraw function."),
            ("https://www.dlnews.com/articles/defi/nexus-protocol-hack", "DL News", _B, _S,
             "Nexus Protocol paused its contracts after roughly $45 million was drained."),
        ],
        "resolution": (ResolutionOutcome.TRUE, 4, "Protocol confirmed exploit; funds not recovered"),
    },
    {
        "source": "defialpha",
        "item_url": "https://t.me/defialpha/789",
        "item_title": "Arbitrum airdrop incoming",
        "item_text": "Insider info: the ARB team is finalizing a massive airdrop for active users. "
                     "Launching next week, get your wallets ready.",
        "claim_text": "Arbitrum preparing massive airdrop for active users, launching next week",
        "claim_type": ClaimType.RUMOR,
        "assets": ["ARB"],
        "asserted": -120, "resolve_by": 2 * 24,
        "resolution_type": ResolutionType.SCHEDULED,
        "falsifiability": 0.6, "confidence": 0.15,
        "status": ClaimStatus.REVIEWED,
        "verdict": (VerdictLabel.SPECULATIVE, 0.12, 0.15,
                    "No official announcement from Arbitrum Foundation. Anonymous source with poor track "
                    "record. Previous similar claims from this channel have failed to materialize.",
                    "Official Arbitrum Foundation announcement confirming airdrop details."),
        "evidence": [
            ("https://t.me/defialpha/790", "DeFi Alpha Leaks", _D, _S,
             "Insider info: ARB team finalizing massive airdrop. Get your wallets ready."),
            ("https://arbitrum.foundation/announcements", "Arbitrum Foundation", _A, _M,
             "Latest foundation announcements cover governance proposals; no airdrop is listed."),
            ("https://cryptoslate.com/arbitrum-airdrop-speculation", "CryptoSlate", _CG, _M,
             "Speculation about a second Arbitrum airdrop resurfaced on Telegram channels."),
        ],
    },
    {
        "source": "reuters",
        "item_url": "https://www.reuters.com/markets/ecb-digital-euro-preparation",
        "item_title": "ECB Moves Digital Euro Into Preparation Phase",
        "item_text": "The European Central Bank advanced its digital euro project to the preparation phase, "
                     "with officials pointing to a potential launch by 2027.",
        "claim_text": "The European Central Bank has advanced the Digital Euro project to its preparation phase, "
                      "with potential launch by 2027",
        "claim_type": ClaimType.REGULATORY_ACTION,
        "assets": ["EUR"],
        "asserted": -144, "resolve_by": None,
        "resolution_type": ResolutionType.IMMEDIATE,
        "falsifiability": 0.92, "confidence": 0.94,
        "status": ClaimStatus.RESOLVED,
        "verdict": (VerdictLabel.VERIFIED, 0.96, 0.94,
                    "Official ECB press release confirms preparation phase advancement. Named ECB officials "
                    "quoted on 2027 timeline. Multiple primary sources in agreement.",
                    "ECB retraction or policy reversal announcement."),
        "evidence": [
            ("https://www.ecb.europa.eu/press/pr/digital-euro", "ECB", _A, _S,
             "The Governing Council has decided to advance the digital euro project to its preparation phase."),
            ("https://www.reuters.com/markets/ecb-cbdc-2027", "Reuters", _B, _S,
             "ECB President Lagarde confirmed the 2027 target during the press conference."),
            ("https://www.bloomberg.com/news/digital-euro-preparation", "Bloomberg", _B, _S,
             "The ECB's digital euro enters a preparation phase expected to last two years."),
        ],
        "resolution": (ResolutionOutcome.TRUE, 2, "ECB press release confirms preparation phase"),
    },
    {
        "source": "cointelegraph",
        "item_url": "https://cointelegraph.com/news/bitcoin-150k-halving",
        "item_title": "Bitcoin Could Hit $150,000 After the Halving, Analysts Say",
        "item_text": "Bitcoin will reach $150,000 following the halving event, according to analysts "
                     "citing supply reduction mechanics.",
        "claim_text": "Bitcoin will reach $150,000 following the halving event",
        "claim_type": ClaimType.PRICE_PREDICTION,
        "assets": ["BTC"],
        "asserted": -96, "resolve_by": None,
        "resolution_type": ResolutionType.INDEFINITE,
        "falsifiability": 0.35, "confidence": 0.3,
        "status": ClaimStatus.REVIEWED,
        "verdict": (VerdictLabel.SPECULATIVE, 0.25, 0.2,
                    "Price predictions are inherently speculative. Historical halving data shows varied "
                    "outcomes. No methodology or evidence supports the specific $150K target.",
                    "This prediction will be resolved by market price movement over time."),
        "evidence": [
            ("https://cointelegraph.com/news/btc-halving-prediction", "Cointelegraph", _CG, _S,
             "Analysts predict BTC could reach new highs post-halving based on supply reduction mechanics."),
            ("https://bitcoinmagazine.com/markets/halving-cycles", "Bitcoin Magazine", _CG, _M,
             "Past halving cycles produced very different price paths in the following year."),
            ("https://blockworks.co/news/bitcoin-price-models", "Blockworks", _B, _M,
             "Stock-to-flow style models have drawn criticism for overstating post-halving targets."),
        ],
    },
]

# Story title and indexes into SEED_CLAIMS.
SEED_STORIES = [
    ("Ethereum ETF Decision: SEC Meeting Scheduled as Approval Rumors Spread", [0, 1]),
    ("Nexus Protocol Exploit Drains $45 Million via Reentrancy Bug", [2]),
    ("Arbitrum Airdrop Rumors Circulate on Telegram", [3]),
    ("ECB Advances Digital Euro to Preparation Phase", [4]),
    ("Bitcoin $150K Post-Halving Price Prediction", [5]),
]


async def seed_initial_data(storage: StorageProvider, now: Optional[datetime] = None) -> None:
    """Populate an empty store with fixture sources, claims and stories."""
    now = now or datetime.now(timezone.utc)

    sources: Dict[str, Source] = {}
    for key, source_type, handle, name, logo_domain, description, score in SEED_SOURCES:
        source = await storage.create_source(Source(
            type=source_type,
            handle_or_domain=handle,
            display_name=name,
            logo_url=_logo(logo_domain),
            metadata={"description": description},
        ))
        sources[key] = source
        track, discipline, sample_size, ci_low, ci_high = score
        await storage.create_source_score(SourceScore(
            source_id=source.id,
            score_version=SEED_SCORE_VERSION,
            track_record=track,
            method_discipline=discipline,
            confidence_interval=ConfidenceInterval(lower=ci_low, upper=ci_high),
            sample_size=sample_size,
        ))

    claims: List[Claim] = []
    for fixture in SEED_CLAIMS:
        source = sources[fixture["source"]]
        asserted_at = now + timedelta(hours=fixture["asserted"])
        text = normalize_text(f"{fixture['item_title']} {fixture['item_text']}")
        item = await storage.create_item(Item(
            source_id=source.id,
            url=fixture["item_url"],
            title=fixture["item_title"],
            raw_text=text,
            content_hash=compute_fingerprint(text),
            item_type=ItemKind.TWEET if source.type == SourceType.X_HANDLE else ItemKind.ARTICLE,
            published_at=asserted_at,
            metadata={"seeded": True},
        ))

        resolve_by = fixture["resolve_by"]
        claim = await storage.create_claim(Claim(
            source_id=source.id,
            item_id=item.id,
            claim_text=fixture["claim_text"],
            claim_type=fixture["claim_type"],
            asset_symbols=fixture["assets"],
            asserted_at=asserted_at,
            resolve_by=now + timedelta(hours=resolve_by) if resolve_by is not None else None,
            resolution_type=fixture["resolution_type"],
            falsifiability_score=fixture["falsifiability"],
            llm_confidence=fixture["confidence"],
            status=fixture["status"],
            created_at=asserted_at,
        ))
        claims.append(claim)

        key_ids = []
        for url, publisher, grade, stance, excerpt in fixture["evidence"]:
            evidence = await storage.create_evidence(EvidenceItem(
                claim_id=claim.id,
                url=url,
                publisher=publisher,
                published_at=asserted_at,
                retrieved_at=asserted_at + timedelta(hours=1),
                excerpt=excerpt,
                stance=stance,
                evidence_grade=grade,
                primary_flag=grade == EvidenceGrade.A,
            ))
            if grade in (EvidenceGrade.A, EvidenceGrade.B):
                key_ids.append(evidence.id)

        label, probability, strength, reasoning, triggers = fixture["verdict"]
        await storage.create_verdict(Verdict(
            claim_id=claim.id,
            model=SEED_MODEL,
            prompt_version=SEED_PROMPT_VERSION,
            verdict_label=label,
            probability_true=probability,
            evidence_strength=strength,
            key_evidence_ids=key_ids,
            reasoning_summary=reasoning,
            invalidation_triggers=triggers,
            created_at=asserted_at + timedelta(hours=1),
        ))

        if "resolution" in fixture:
            outcome, after_hours, notes = fixture["resolution"]
            primary_url = next(url for url, _, grade, _, _ in fixture["evidence"] if grade == EvidenceGrade.A)
            await storage.create_resolution(Resolution(
                claim_id=claim.id,
                outcome=outcome,
                resolved_at=asserted_at + timedelta(hours=after_hours),
                resolution_evidence_url=primary_url,
                notes=notes,
            ))

    for title, indexes in SEED_STORIES:
        members = [claims[i] for i in indexes]
        symbols: List[str] = []
        for claim in members:
            symbols.extend(s for s in claim.asset_symbols if s not in symbols)
        created_at = min(c.asserted_at for c in members)
        story = await storage.create_story(Story(
            title=title,
            summary=story_summary(title, [c.claim_text for c in members]),
            category=STORY_CATEGORY,
            image_url=story_image_url(title),
            asset_symbols=symbols,
            source_count=len({c.source_id for c in members}),
            created_at=created_at,
            updated_at=created_at,
            metadata={"seeded": True},
        ))
        for claim in members:
            await storage.add_claim_to_story(story.id, claim.id)
            await storage.add_item_to_story(story.id, claim.item_id)

    stats = await storage.get_pipeline_stats()
    logger.info(
        f"🌱 Seeded {stats.total_sources} sources, {stats.total_claims} claims, "
        f"{stats.total_evidence} evidence, {stats.total_stories} stories"
    )

"""Clusters claims into stories and summarizes story credibility."""

import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote

from pydantic import BaseModel, Field

from ..models.claim import Claim
from ..models.source import Source
from ..models.story import CredibilityDistribution, Story, StoryFeedItem, TopSource
from ..ports.storage import StorageProvider

logger = logging.getLogger(__name__)

STORY_CATEGORY = "crypto"
MAX_TOP_SOURCES = 5

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "is", "are", "was", "were", "be", "been", "has", "have",
    "had", "do", "does", "did", "will", "would", "could", "should", "may", "might",
    "can", "shall", "it", "its", "this", "that", "these", "those", "not", "no",
    "nor", "as", "if", "than", "too", "very", "so", "up", "out", "about", "into",
    "over", "after", "new", "says", "said", "crypto", "cryptocurrency", "blockchain",
    "report", "reports", "according",
})

_NON_WORD = re.compile(r"[^a-z0-9\s]")
_NON_TITLE = re.compile(r"[^a-zA-Z0-9 ]")


class GroupingCandidate(BaseModel):
    """A claim plus the item context used for clustering."""

    claim_id: str
    claim_text: str
    title: str = ""
    asset_symbols: List[str] = Field(default_factory=list)
    published_at: Optional[datetime] = None
    item_id: str
    source_id: str


class StoryGroupingPolicy(BaseModel):
    """Thresholds for the default similarity function and story matching."""

    window_hours: float = Field(72.0, description="Claims further apart never share a story")
    min_shared_words: int = Field(2, description="Shared significant words that link two claims")
    link_on_asset_overlap: bool = Field(True, description="Any shared asset links two claims")
    match_shared_words: int = Field(2, description="Title words to join an existing story")
    match_shared_words_with_assets: int = Field(1, description="Title words to join when assets overlap")


class StoryGroup(BaseModel):
    title: str
    members: List[GroupingCandidate]

    @property
    def claim_ids(self) -> List[str]:
        return [m.claim_id for m in self.members]

    @property
    def asset_symbols(self) -> List[str]:
        symbols: List[str] = []
        for member in self.members:
            for symbol in member.asset_symbols:
                if symbol not in symbols:
                    symbols.append(symbol)
        return symbols


SimilarityFunction = Callable[[GroupingCandidate, GroupingCandidate], bool]


def significant_words(text: str) -> List[str]:
    cleaned = _NON_WORD.sub("", text.lower())
    return [w for w in cleaned.split() if len(w) > 2 and w not in STOP_WORDS]


def story_image_url(title: str, category: str = STORY_CATEGORY) -> str:
    clean_title = _NON_TITLE.sub("", title)[:80]
    prompt = (
        f"professional editorial news photograph about {clean_title}, {category}, "
        "photojournalism style, high quality, detailed"
    )
    return f"https://image.pollinations.ai/prompt/{quote(prompt, safe='')}?width=1200&height=675&nologo=true"


def story_summary(title: str, claim_texts: Sequence[str]) -> str:
    if not claim_texts:
        return title
    primary = claim_texts[0]
    if len(claim_texts) == 1:
        return primary if len(primary) <= 200 else primary[:197] + "..."
    truncated = primary if len(primary) <= 150 else primary[:147] + "..."
    return f"{truncated} This story includes {len(claim_texts)} related claims from multiple sources."


def keyword_asset_similarity(policy: Optional[StoryGroupingPolicy] = None) -> SimilarityFunction:
    """Default similarity: time window, then shared words or shared assets."""
    policy = policy or StoryGroupingPolicy()

    def similar(a: GroupingCandidate, b: GroupingCandidate) -> bool:
        now = datetime.now(timezone.utc)
        hours_apart = abs(((a.published_at or now) - (b.published_at or now)).total_seconds()) / 3600
        if hours_apart > policy.window_hours:
            return False
        words_b = set(significant_words(f"{b.title} {b.claim_text}"))
        shared = [w for w in significant_words(f"{a.title} {a.claim_text}") if w in words_b]
        if len(shared) >= policy.min_shared_words:
            return True
        return policy.link_on_asset_overlap and bool(set(a.asset_symbols) & set(b.asset_symbols))

    return similar


def group_candidates(
    candidates: Sequence[GroupingCandidate],
    similar: Optional[SimilarityFunction] = None,
) -> List[StoryGroup]:
    """Union-find over pairwise similarity. Titles are the longest member title."""
    similar = similar or keyword_asset_similarity()
    parent = list(range(len(candidates)))

    def find(node: int) -> int:
        while parent[node] != node:
            parent[node] = parent[parent[node]]
            node = parent[node]
        return node

    for i in range(len(candidates)):
        for j in range(i + 1, len(candidates)):
            if similar(candidates[i], candidates[j]):
                root_i, root_j = find(i), find(j)
                if root_i != root_j:
                    parent[root_j] = root_i

    clusters: Dict[int, List[GroupingCandidate]] = {}
    for index, candidate in enumerate(candidates):
        clusters.setdefault(find(index), []).append(candidate)

    groups = []
    for members in clusters.values():
        title = members[0].title or members[0].claim_text
        for member in members:
            if member.title and len(member.title) > len(title):
                title = member.title
        groups.append(StoryGroup(title=title, members=members))
    return groups


def build_feed_item(
    story: Story,
    claims: Sequence[Claim],
    probabilities: Dict[str, Optional[float]],
    sources: Dict[str, Source],
    latest_item_timestamp: Optional[datetime] = None,
    high_threshold: float = 0.7,
    low_threshold: float = 0.3,
) -> StoryFeedItem:
    """Feed projection with credibility distribution and top sources.

    Args:
        story: Story to project
        claims: Member claims
        probabilities: Current verdict probability per claim id (None when unscored)
        sources: Sources by id
        latest_item_timestamp: Newest publish time among member items
        high_threshold: Probability at or above which a claim counts as high
        low_threshold: Probability below which a claim counts as low
    """
    distribution = CredibilityDistribution.from_probabilities(
        (probabilities.get(claim.id) for claim in claims), high_threshold, low_threshold
    )
    appearances = Counter(claim.source_id for claim in claims)
    top_sources = []
    for source_id, count in appearances.most_common(MAX_TOP_SOURCES):
        source = sources.get(source_id)
        if source is None:
            continue
        top_sources.append(TopSource(
            source_id=source_id,
            display_name=source.display_name,
            logo_url=source.logo_url,
            appearances=count,
        ))

    return StoryFeedItem(
        id=story.id,
        title=story.title,
        summary=story.summary,
        category=story.category,
        image_url=story.image_url,
        status=story.status,
        created_at=story.created_at,
        asset_symbols=story.asset_symbols,
        source_count=story.source_count,
        claim_count=len(claims),
        credibility_distribution=distribution,
        top_sources=top_sources,
        latest_item_timestamp=latest_item_timestamp,
    )


class StoryGrouper:
    """Groups claims into stories without duplicating existing clusters."""

    def __init__(
        self,
        storage: StorageProvider,
        similarity: Optional[SimilarityFunction] = None,
        policy: Optional[StoryGroupingPolicy] = None,
    ):
        self._storage = storage
        self._policy = policy or StoryGroupingPolicy()
        self._similarity = similarity or keyword_asset_similarity(self._policy)

    async def group_and_persist(self, candidates: Sequence[GroupingCandidate]) -> List[Story]:
        """Cluster candidates and create or extend stories.

        Returns:
            Stories that were created or updated
        """
        if not candidates:
            return []
        groups = group_candidates(candidates, self._similarity)
        logger.info(f"📚 Identified {len(groups)} story groups from {len(candidates)} claims")

        touched: List[Story] = []
        for group in groups:
            existing = await self._find_existing_story(group)
            story = await self._attach(existing, group) if existing else await self._create(group)
            touched.append(story)
        return touched

    async def _find_existing_story(self, group: StoryGroup) -> Optional[Story]:
        for claim_id in group.claim_ids:
            story = await self._storage.get_story_by_claim_id(claim_id)
            if story is not None:
                return story

        group_words = significant_words(group.title)
        group_assets = {s.upper() for s in group.asset_symbols}
        best: Optional[Story] = None
        best_score = 0
        for story in await self._storage.get_stories():
            story_words = set(significant_words(story.title))
            score = sum(1 for word in group_words if word in story_words)
            asset_overlap = bool(group_assets & {s.upper() for s in story.asset_symbols})
            qualifies = score >= self._policy.match_shared_words or (
                asset_overlap and score >= self._policy.match_shared_words_with_assets
            )
            if qualifies and score > best_score:
                best, best_score = story, score
        if best is not None:
            logger.info(f"🔗 Matched group to existing story '{best.title[:60]}' (score={best_score})")
        return best

    async def _link(self, story: Story, group: StoryGroup) -> None:
        for claim_id in group.claim_ids:
            await self._storage.add_claim_to_story(story.id, claim_id)
        for item_id in {m.item_id for m in group.members}:
            await self._storage.add_item_to_story(story.id, item_id)

    async def _source_count(self, story_id: str) -> int:
        with_claims = await self._storage.get_story_with_claims(story_id)
        if with_claims is None:
            return 0
        return len({claim.source_id for claim in with_claims.claims})

    async def _attach(self, story: Story, group: StoryGroup) -> Story:
        await self._link(story, group)
        symbols = list(story.asset_symbols)
        for symbol in group.asset_symbols:
            if symbol not in symbols:
                symbols.append(symbol)
        changes = {
            "asset_symbols": symbols,
            "source_count": await self._source_count(story.id),
            "updated_at": datetime.now(timezone.utc),
        }
        if not story.image_url:
            changes["image_url"] = story_image_url(group.title)
        updated = await self._storage.update_story(story.id, **changes)
        logger.info(f"✅ Updated story '{story.title[:60]}' with {len(group.members)} claims")
        return updated

    async def _create(self, group: StoryGroup) -> Story:
        story = await self._storage.create_story(Story(
            title=group.title,
            summary=story_summary(group.title, [m.claim_text for m in group.members]),
            category=STORY_CATEGORY,
            image_url=story_image_url(group.title),
            asset_symbols=group.asset_symbols,
            metadata={"claim_count": len(group.members), "created_by_pipeline": True},
        ))
        await self._link(story, group)
        story = await self._storage.update_story(
            story.id, source_count=await self._source_count(story.id)
        )
        logger.info(f"✅ Created story '{story.title[:60]}' with {len(group.members)} claims")
        return story


def candidates_from_claims(claims: Iterable[Claim], titles: Dict[str, str]) -> List[GroupingCandidate]:
    """Grouping candidates from stored claims; ``titles`` maps item id to title."""
    return [
        GroupingCandidate(
            claim_id=claim.id,
            claim_text=claim.claim_text,
            title=titles.get(claim.item_id, ""),
            asset_symbols=claim.asset_symbols,
            published_at=claim.asserted_at,
            item_id=claim.item_id,
            source_id=claim.source_id,
        )
        for claim in claims
    ]



"""Story endpoints: the feed and story detail."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ...domain.models.claim import Claim
from ...domain.models.story import Story, StoryFeedItem
from ...domain.models.verdict import Verdict
from ...domain.ports.storage import StorageProvider
from ...infrastructure.dependencies import get_storage

router = APIRouter(prefix="/stories", tags=["stories"])


class StoryClaim(BaseModel):
    claim: Claim
    verdict: Optional[Verdict] = None


class StoryDetail(BaseModel):
    """A story with its member claims and their current verdicts."""

    story: Story
    claims: List[StoryClaim]


@router.get("", response_model=List[StoryFeedItem])
async def story_feed(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    storage: StorageProvider = Depends(get_storage),
) -> List[StoryFeedItem]:
    """Stories with credibility distribution and top sources, latest activity first."""
    return await storage.get_stories_for_feed(limit=limit, offset=offset)


@router.get("/{story_id}", response_model=StoryDetail)
async def get_story(story_id: str, storage: StorageProvider = Depends(get_storage)) -> StoryDetail:
    with_claims = await storage.get_story_with_claims(story_id)
    if with_claims is None:
        raise HTTPException(status_code=404, detail=f"Story not found: {story_id}")
    return StoryDetail(
        story=with_claims.story,
        claims=[
            StoryClaim(claim=claim, verdict=await storage.get_latest_verdict(claim.id))
            for claim in with_claims.claims
        ],
    )

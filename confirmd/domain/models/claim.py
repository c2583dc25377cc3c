"""Domain models for factual claims."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from .item import to_utc


class ClaimType(str, Enum):
    """Closed set of claim categories."""

    FILING_SUBMITTED = "filing_submitted"
    FILING_APPROVED_OR_DENIED = "filing_approved_or_denied"
    REGULATORY_ACTION = "regulatory_action"
    LISTING_ANNOUNCED = "listing_announced"
    LISTING_LIVE = "listing_live"
    DELISTING_ANNOUNCED = "delisting_announced"
    TRADING_HALT = "trading_halt"
    MAINNET_LAUNCH = "mainnet_launch"
    TESTNET_LAUNCH = "testnet_launch"
    UPGRADE_RELEASED = "upgrade_released"
    EXPLOIT_OR_HACK = "exploit_or_hack"
    AUDIT_RESULT = "audit_result"
    PARTNERSHIP_ANNOUNCED = "partnership_announced"
    INVESTMENT_OR_ACQUISITION = "investment_or_acquisition"
    LARGE_TRANSFER_OR_WHALE = "large_transfer_or_whale"
    MINT_OR_BURN = "mint_or_burn"
    WALLET_ATTRIBUTION = "wallet_attribution"
    PRICE_PREDICTION = "price_prediction"
    TIMELINE_PREDICTION = "timeline_prediction"
    RUMOR = "rumor"
    MISC_CLAIM = "misc_claim"


class ResolutionType(str, Enum):
    """How and when a claim becomes checkable."""

    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"
    INDEFINITE = "indefinite"


class ClaimStatus(str, Enum):
    """Review lifecycle. Advances only forward."""

    UNREVIEWED = "unreviewed"
    NEEDS_EVIDENCE = "needs_evidence"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"

    @property
    def rank(self) -> int:
        return list(ClaimStatus).index(self)


class CandidateClaim(BaseModel):
    """Claim proposed by an extractor, not yet bound to an item."""

    claim_text: str = Field(..., min_length=1)
    claim_type: ClaimType
    asset_symbols: List[str] = Field(default_factory=list)
    resolution_type: ResolutionType = ResolutionType.INDEFINITE
    resolve_by: Optional[datetime] = None
    falsifiability_score: float = Field(0.5, ge=0.0, le=1.0)
    llm_confidence: float = Field(0.5, ge=0.0, le=1.0)

    @field_validator("claim_text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("claim_text must not be blank")
        return value

    @field_validator("asset_symbols")
    @classmethod
    def _upper_symbols(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for symbol in value:
            symbol = str(symbol).strip().upper()
            if symbol and symbol not in seen:
                seen.append(symbol)
        return seen

    @field_validator("resolve_by")
    @classmethod
    def _utc_deadline(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value)


class Claim(BaseModel):
    """An atomic factual assertion extracted from an item."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    source_id: str
    item_id: str
    claim_text: str
    claim_type: ClaimType
    asset_symbols: List[str] = Field(default_factory=list)
    asserted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resolve_by: Optional[datetime] = None
    resolution_type: ResolutionType = ResolutionType.INDEFINITE
    falsifiability_score: float = Field(0.5, ge=0.0, le=1.0)
    llm_confidence: float = Field(0.5, ge=0.0, le=1.0)
    status: ClaimStatus = ClaimStatus.UNREVIEWED
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("asserted_at", "resolve_by", "created_at")
    @classmethod
    def _utc_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value)

    @model_validator(mode="after")
    def _deadline_after_assertion(self) -> "Claim":
        if self.resolve_by is not None and self.resolve_by < self.asserted_at:
            raise ValueError("resolve_by must be at or after asserted_at")
        return self

    class Config:
        """Pydantic model configuration."""
        frozen = True
        json_schema_extra = {
            "example": {
                "claim_text": "Nexus Protocol lost approximately $45 million in a smart contract exploit",
                "claim_type": "exploit_or_hack",
                "asset_symbols": ["NEXUS", "ETH"],
                "resolution_type": "immediate",
                "falsifiability_score": 0.98,
                "llm_confidence": 0.95,
            }
        }

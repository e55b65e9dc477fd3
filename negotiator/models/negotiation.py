"""
Negotiation value types.

WHAT: In-memory snapshots and results passed between components
WHY: Keep the heuristic and drafting pure, free of ORM sessions
HOW: Frozen dataclasses and a two-variant draft result
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from ..core.models import DealTerms, Urgency


@dataclass(frozen=True)
class TermsSnapshot:
    """Numeric inputs of one deal's terms, detached from the ORM row."""
    seller_initial: float
    seller_min: float
    seller_min_current: float
    seller_urgency: Urgency
    buyer_max: Optional[float] = None
    buyer_initial_offer: Optional[float] = None
    buyer_urgency: Optional[Urgency] = None

    @property
    def buyer_ready(self) -> bool:
        """True once the buyer has submitted a max and an opening offer."""
        return bool(self.buyer_max) and bool(self.buyer_initial_offer)

    @classmethod
    def from_row(cls, row: DealTerms) -> "TermsSnapshot":
        return cls(
            seller_initial=row.seller_initial,
            seller_min=row.seller_min,
            seller_min_current=row.seller_min_current,
            seller_urgency=row.seller_urgency,
            buyer_max=row.buyer_max,
            buyer_initial_offer=row.buyer_initial_offer,
            buyer_urgency=row.buyer_urgency,
        )


@dataclass(frozen=True)
class HeuristicResult:
    """Outcome of the bounded-offer heuristic."""
    price: float
    has_zone: bool
    lower: float  # seller_min_current
    upper: float  # buyer_max when a zone exists, else seller_min_current

    def within_bounds(self, price: float) -> bool:
        return self.lower <= price <= self.upper


@dataclass(frozen=True)
class ProductSnapshot:
    """Public product fields shown to the text-generation capability."""
    title: str
    description: Optional[str]
    public_price: float


@dataclass(frozen=True)
class DraftValid:
    """Suggestion from the capability that passed validation."""
    price: float
    message: str
    rationale: str
    kind: Literal["valid"] = "valid"


@dataclass(frozen=True)
class DraftInvalid:
    """Suggestion rejected by validation, with the reason."""
    reason: str
    kind: Literal["invalid"] = "invalid"


DraftResult = Union[DraftValid, DraftInvalid]


@dataclass(frozen=True)
class MediatorDraft:
    """Final wording to persist. The price always comes from the heuristic."""
    price: float
    message: str
    rationale: str
    source: Literal["llm", "fallback"]
    fallback_reason: Optional[str] = None


@dataclass
class ProposeOutcome:
    """Result of Orchestrator.propose."""
    pending_seller: bool
    no_zone: bool
    proposed_price: Optional[float] = None
    offer_id: Optional[str] = None
    created: bool = False
    message: Optional[str] = None


@dataclass
class RespondOutcome:
    """Result of Orchestrator.respond."""
    ok: bool
    deal_status: str
    buyer_status: Optional[str] = None
    seller_status: Optional[str] = None
    closed: bool = False
    reopened: bool = False
    notices: list[str] = field(default_factory=list)

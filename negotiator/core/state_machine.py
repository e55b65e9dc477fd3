"""
Deal lifecycle state machine.

WHAT: Explicit transition table for deal status plus the guarded write
WHY: Status is the coordination point between concurrent client actions;
     a write that is not a legal transition must never land
HOW: (status, trigger) -> status table; writes are conditional UPDATEs
     that only succeed while the stored status still equals the status the
     caller observed
"""

from dataclasses import dataclass
from datetime import datetime
import enum
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from .models import Deal, DealStatus
from ..utils.exceptions import DealNotFoundException, InvalidTransitionException
from ..utils.logger import get_logger

logger = get_logger(__name__)


class Trigger(str, enum.Enum):
    """Events that move a deal through its lifecycle."""
    OFFER_CREATED = "offer_created"
    NO_ZONE = "no_zone"
    PROPOSE_REPEATED = "propose_repeated"
    BOTH_ACCEPTED = "both_accepted"
    REJECTED = "rejected"
    MIN_ADJUSTED = "min_adjusted"
    STALE_OFFER = "stale_offer"


TERMINAL_STATUSES = frozenset({DealStatus.ACCEPTED, DealStatus.REJECTED})


def build_transition_table(close_on_reject: bool = False) -> dict:
    """
    Transition table for the configured reject policy.

    With close_on_reject=False a reject reopens the deal (active); with True
    it closes the deal in the terminal rejected status.
    """
    return {
        (DealStatus.ACTIVE, Trigger.OFFER_CREATED): DealStatus.PENDING_SELLER,
        (DealStatus.ACTIVE, Trigger.NO_ZONE): DealStatus.ACTIVE,
        (DealStatus.PENDING_SELLER, Trigger.PROPOSE_REPEATED): DealStatus.PENDING_SELLER,
        (DealStatus.PENDING_SELLER, Trigger.BOTH_ACCEPTED): DealStatus.ACCEPTED,
        (DealStatus.PENDING_SELLER, Trigger.REJECTED): (
            DealStatus.REJECTED if close_on_reject else DealStatus.ACTIVE
        ),
        (DealStatus.PENDING_SELLER, Trigger.STALE_OFFER): DealStatus.ACTIVE,
        (DealStatus.ACTIVE, Trigger.MIN_ADJUSTED): DealStatus.ACTIVE,
        (DealStatus.PENDING_SELLER, Trigger.MIN_ADJUSTED): DealStatus.ACTIVE,
    }


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a guarded status write."""
    applied: bool
    from_status: DealStatus
    to_status: DealStatus
    trigger: Trigger

    @property
    def changed(self) -> bool:
        return self.applied and self.from_status != self.to_status


class DealStateMachine:
    """Validates and applies deal status transitions."""

    def __init__(self, close_on_reject: bool = False):
        self.close_on_reject = close_on_reject
        self.table = build_transition_table(close_on_reject)

    @staticmethod
    def is_terminal(status: DealStatus) -> bool:
        return status in TERMINAL_STATUSES

    def target(self, current: DealStatus, trigger: Trigger) -> Optional[DealStatus]:
        """Status reached from `current` on `trigger`, or None if illegal."""
        return self.table.get((DealStatus(current), Trigger(trigger)))

    def can_fire(self, current: DealStatus, trigger: Trigger) -> bool:
        return self.target(current, trigger) is not None

    def apply(
        self,
        session: Session,
        deal_id: str,
        trigger: Trigger,
        expected: DealStatus,
    ) -> TransitionResult:
        """
        Fire `trigger` on a deal the caller observed in status `expected`.

        Self-loops are validated but not written. Every other transition is a
        single conditional UPDATE ... WHERE status = expected; if another
        request changed the status first, nothing is written and the result
        has applied=False.

        Raises:
            InvalidTransitionException: trigger not legal from `expected`
        """
        to_status = self.target(expected, trigger)
        if to_status is None:
            raise InvalidTransitionException(deal_id, DealStatus(expected).value, Trigger(trigger).value)

        if to_status == expected:
            logger.debug(f"Deal {deal_id}: {trigger.value} keeps status {expected.value}")
            return TransitionResult(True, expected, to_status, trigger)

        stmt = (
            update(Deal)
            .where(Deal.id == deal_id, Deal.status == expected)
            .values(status=to_status, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        rowcount = session.execute(stmt).rowcount

        if rowcount != 1:
            logger.info(
                f"Deal {deal_id}: {trigger.value} lost the race "
                f"(expected {expected.value}, no row updated)"
            )
            return TransitionResult(False, expected, to_status, trigger)

        # Keep any loaded instance in sync without marking it dirty
        deal = session.identity_map.get(session.identity_key(Deal, deal_id))
        if deal is not None:
            set_committed_value(deal, "status", to_status)

        logger.info(f"Deal {deal_id}: {expected.value} -> {to_status.value} ({trigger.value})")
        return TransitionResult(True, expected, to_status, trigger)

    def fire(self, session: Session, deal_id: str, trigger: Trigger) -> TransitionResult:
        """Read the current status inside the transaction, then apply."""
        deal = session.get(Deal, deal_id, populate_existing=True)
        if deal is None:
            raise DealNotFoundException(deal_id)
        return self.apply(session, deal_id, trigger, deal.status)

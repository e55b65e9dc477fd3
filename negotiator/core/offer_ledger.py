"""
Offer ledger and two-sided acceptance protocol.

WHAT: Append-only offer records with independent buyer/seller answers
WHY: A deal closes only when both parties accept the same offer, even when
     their answers race each other
HOW: Answers are compare-and-set writes on the offer row (a role can only
     fill its own empty slot); the joint outcome is evaluated from a re-read
     taken inside the same transaction
"""

from dataclasses import dataclass
import enum
from typing import Optional

from sqlalchemy import select, update, or_
from sqlalchemy.orm import Session

from .models import Offer, DealStatus, ParticipantRole, OfferAction
from ..utils.exceptions import (
    ValidationException,
    OfferNotFoundException,
    OfferAlreadyAnsweredException,
    OfferNotLiveException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class JointOutcome(str, enum.Enum):
    """Combined state of the two answers on one offer."""
    AWAITING = "awaiting"
    BOTH_ACCEPTED = "both_accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ResponseRecord:
    """Result of recording one party's answer."""
    offer: Offer
    outcome: JointOutcome
    changed: bool  # False when the same answer was already on record


def parse_role(role) -> ParticipantRole:
    try:
        return ParticipantRole(role)
    except ValueError:
        raise ValidationException(
            f"Invalid role: {role}",
            field_errors=[{"field": "role", "msg": "must be 'buyer' or 'seller'"}]
        )


def parse_action(action) -> OfferAction:
    try:
        return OfferAction(action)
    except ValueError:
        raise ValidationException(
            f"Invalid action: {action}",
            field_errors=[{"field": "action", "msg": "must be 'accept' or 'reject'"}]
        )


def joint_outcome(offer: Offer) -> JointOutcome:
    if offer.buyer_status == OfferAction.REJECT or offer.seller_status == OfferAction.REJECT:
        return JointOutcome.REJECTED
    if offer.buyer_status == OfferAction.ACCEPT and offer.seller_status == OfferAction.ACCEPT:
        return JointOutcome.BOTH_ACCEPTED
    return JointOutcome.AWAITING


class OfferLedger:
    """Reads and writes offer rows inside a caller-owned transaction."""

    def create_offer(self, session: Session, deal_id: str, price: float, rationale: str) -> Offer:
        offer = Offer(deal_id=deal_id, proposed_price=price, rationale=rationale)
        session.add(offer)
        session.flush()
        logger.info(f"Offer {offer.id} recorded for deal {deal_id} at ${price:.2f}")
        return offer

    def get_offer(self, session: Session, deal_id: str, offer_id: str) -> Optional[Offer]:
        stmt = select(Offer).where(Offer.id == offer_id, Offer.deal_id == deal_id)
        return session.execute(stmt.execution_options(populate_existing=True)).scalar_one_or_none()

    def latest_offer(self, session: Session, deal_id: str) -> Optional[Offer]:
        stmt = (
            select(Offer)
            .where(Offer.deal_id == deal_id)
            .order_by(Offer.seq.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return session.execute(stmt).scalar_one_or_none()

    def list_offers(self, session: Session, deal_id: str) -> list[Offer]:
        stmt = select(Offer).where(Offer.deal_id == deal_id).order_by(Offer.seq)
        return list(session.execute(stmt).scalars())

    def current_zone_offer(self, session: Session, deal_id: str, deal_status: DealStatus) -> Optional[Offer]:
        """
        The live offer of a deal, if any.

        Live means: the deal is pending_seller, the offer is the most recent
        one, and no party has rejected it yet.
        """
        if deal_status != DealStatus.PENDING_SELLER:
            return None
        offer = self.latest_offer(session, deal_id)
        if offer is None or joint_outcome(offer) != JointOutcome.AWAITING:
            return None
        return offer

    def record_response(
        self,
        session: Session,
        deal_id: str,
        offer_id: str,
        role,
        action,
    ) -> ResponseRecord:
        """
        Set exactly one of buyer_status / seller_status, then evaluate.

        The write only lands while the role's slot is empty and the other
        party has not rejected. Repeating the same answer is a no-op;
        changing an answer is refused.

        Raises:
            ValidationException: invalid role or action
            OfferNotFoundException: no such offer on this deal
            OfferAlreadyAnsweredException: the role already gave the other answer
        """
        role = parse_role(role)
        action = parse_action(action)

        own_col = Offer.buyer_status if role == ParticipantRole.BUYER else Offer.seller_status
        other_col = Offer.seller_status if role == ParticipantRole.BUYER else Offer.buyer_status

        stmt = (
            update(Offer)
            .where(
                Offer.id == offer_id,
                Offer.deal_id == deal_id,
                own_col.is_(None),
                or_(other_col.is_(None), other_col != OfferAction.REJECT),
            )
            .values({own_col.key: action})
            .execution_options(synchronize_session=False)
        )
        changed = session.execute(stmt).rowcount == 1

        offer = self.get_offer(session, deal_id, offer_id)
        if offer is None:
            raise OfferNotFoundException(deal_id, offer_id)

        if not changed:
            current = getattr(offer, own_col.key)
            if current is None:
                # Slot still empty: the other party rejected first
                raise OfferNotLiveException(deal_id, offer_id)
            if current != action:
                raise OfferAlreadyAnsweredException(offer_id, role.value, OfferAction(current).value)
            logger.info(f"Offer {offer_id}: {role.value} answer '{action.value}' unchanged")

        outcome = joint_outcome(offer)
        logger.info(
            f"Offer {offer_id}: buyer={_val(offer.buyer_status)} seller={_val(offer.seller_status)} "
            f"-> {outcome.value}"
        )
        return ResponseRecord(offer=offer, outcome=outcome, changed=changed)


def _val(status) -> str:
    return OfferAction(status).value if status is not None else "-"

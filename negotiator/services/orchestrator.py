"""
Negotiation orchestrator.

WHAT: Request-level coordinator for every client action on a deal
WHY: Each action is a stateless request; all coordination between concurrent
     actions goes through the store's atomicity, never through process memory
HOW: Heuristic -> drafting -> ledger -> state machine. Every multi-record write
     runs in one transaction, and no transaction is held across an await, so
     the slow drafting call never holds the write lock
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
import math
import secrets
from typing import Optional

from sqlalchemy import select

from ..core.config import Settings
from ..core.database import Database
from ..core.models import (
    Deal, DealTerms, Message, DealParticipant,
    DealStatus, Urgency, ParticipantRole, SenderRole,
)
from ..core.offer_ledger import OfferLedger, JointOutcome, parse_role, parse_action
from ..core.state_machine import DealStateMachine, Trigger
from ..agents.mediator_agent import MediatorAgent, format_money
from ..models.negotiation import (
    TermsSnapshot,
    HeuristicResult,
    ProductSnapshot,
    MediatorDraft,
    ProposeOutcome,
    RespondOutcome,
)
from .heuristic import compute_offer, assert_within_zone
from ..utils.exceptions import (
    ValidationException,
    DealNotFoundException,
    TermsNotFoundException,
    OfferNotFoundException,
    ParticipantNotFoundException,
    ParticipantForbiddenException,
    DealClosedException,
    OfferNotLiveException,
    InvalidTransitionException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 2000
MAX_TITLE_LENGTH = 200


@dataclass(frozen=True)
class _ProposeContext:
    """Everything the drafting step needs, read in the preparation transaction."""
    product: ProductSnapshot
    terms: TermsSnapshot
    heuristic: HeuristicResult
    transcript: list


def _require_amount(value, field: str, *, allow_zero: bool = False) -> float:
    """Validate a finite positive (or non-negative) amount."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationException(
            f"{field} must be a number",
            field_errors=[{"field": field, "msg": "must be a finite number"}]
        )
    if value < 0 or (value == 0 and not allow_zero):
        rule = "must be >= 0" if allow_zero else "must be > 0"
        raise ValidationException(f"{field} {rule}", field_errors=[{"field": field, "msg": rule}])
    return float(value)


def _parse_urgency(value, field: str) -> Urgency:
    try:
        return Urgency(value)
    except ValueError:
        raise ValidationException(
            f"Invalid {field}: {value}",
            field_errors=[{"field": field, "msg": "must be 'low', 'medium' or 'high'"}]
        )


def _message_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "sender_role": SenderRole(message.sender_role).value,
        "content": message.content,
        "created_at": message.created_at.isoformat(),
    }


def _offer_dict(offer, live: bool) -> dict:
    return {
        "id": offer.id,
        "proposed_price": offer.proposed_price,
        "rationale": offer.rationale,
        "buyer_status": offer.buyer_status.value if offer.buyer_status else None,
        "seller_status": offer.seller_status.value if offer.seller_status else None,
        "created_at": offer.created_at.isoformat(),
        "live": live,
    }


class NegotiationOrchestrator:
    """Entry points for deal publication, joining, chat and the offer protocol."""

    def __init__(self, database: Database, mediator: MediatorAgent, settings: Settings):
        self.db = database
        self.mediator = mediator
        self.settings = settings
        self.state_machine = DealStateMachine(close_on_reject=settings.CLOSE_DEAL_ON_REJECT)
        self.ledger = OfferLedger()

    # ------------------------------------------------------------------
    # Shared reads
    # ------------------------------------------------------------------

    def _load_deal(self, session, deal_id: str) -> Deal:
        deal = session.get(Deal, deal_id, populate_existing=True)
        if deal is None:
            raise DealNotFoundException(deal_id)
        return deal

    def _load_terms(self, session, deal_id: str) -> DealTerms:
        stmt = select(DealTerms).where(DealTerms.deal_id == deal_id).execution_options(populate_existing=True)
        terms = session.execute(stmt).scalar_one_or_none()
        if terms is None:
            raise TermsNotFoundException(deal_id)
        return terms

    def _ensure_open(self, deal: Deal):
        if self.state_machine.is_terminal(deal.status):
            raise DealClosedException(deal.id, DealStatus(deal.status).value)

    def _append_message(self, session, deal_id: str, sender: SenderRole, content: str) -> Message:
        message = Message(deal_id=deal_id, sender_role=sender, content=content)
        session.add(message)
        session.flush()
        return message

    def _transcript(self, session, deal_id: str) -> list[dict]:
        stmt = select(Message).where(Message.deal_id == deal_id).order_by(Message.seq)
        return [_message_dict(m) for m in session.execute(stmt).scalars()]

    def _is_consistent(self, offer, heuristic: HeuristicResult) -> bool:
        """A pending offer is still valid only inside the current zone."""
        return heuristic.has_zone and heuristic.within_bounds(offer.proposed_price)

    # ------------------------------------------------------------------
    # Deal publication and participants
    # ------------------------------------------------------------------

    def create_deal(
        self,
        *,
        owner_id: str,
        title: str,
        public_price: float,
        seller_initial: float,
        seller_min: float,
        seller_urgency: str = "medium",
        description: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> dict:
        """
        Publish a deal with its seller terms and one token per role.

        Returns:
            Dict with deal_id, status, seller_token and buyer_token
        """
        title = (title or "").strip()
        if not title or len(title) > MAX_TITLE_LENGTH:
            raise ValidationException(
                "Title is required",
                field_errors=[{"field": "title", "msg": f"must be 1..{MAX_TITLE_LENGTH} characters"}]
            )
        if not (owner_id or "").strip():
            raise ValidationException(
                "owner_id is required",
                field_errors=[{"field": "owner_id", "msg": "must not be empty"}]
            )
        public_price = _require_amount(public_price, "public_price", allow_zero=True)
        seller_initial = _require_amount(seller_initial, "seller_initial")
        seller_min = _require_amount(seller_min, "seller_min")
        if seller_min > seller_initial:
            raise ValidationException(
                "seller_min cannot exceed seller_initial",
                field_errors=[{"field": "seller_min", "msg": "must be <= seller_initial"}]
            )
        urgency = _parse_urgency(seller_urgency, "seller_urgency")

        with self.db.session("create_deal") as session:
            deal = Deal(
                owner_id=owner_id.strip(),
                product_title=title,
                product_description=description,
                product_price_public=public_price,
                product_image_url=image_url,
                status=DealStatus.ACTIVE,
            )
            session.add(deal)
            session.flush()

            session.add(DealTerms(
                deal_id=deal.id,
                seller_initial=seller_initial,
                seller_min=seller_min,
                seller_min_current=seller_min,
                seller_urgency=urgency,
            ))

            tokens = {}
            for role in (ParticipantRole.SELLER, ParticipantRole.BUYER):
                token = secrets.token_urlsafe(24)
                session.add(DealParticipant(token=token, deal_id=deal.id, role=role))
                tokens[role] = token

            logger.info(f"Deal {deal.id} published by {deal.owner_id}: {title} (public ${public_price:.2f})")
            return {
                "deal_id": deal.id,
                "status": DealStatus.ACTIVE.value,
                "seller_token": tokens[ParticipantRole.SELLER],
                "buyer_token": tokens[ParticipantRole.BUYER],
            }

    def resolve_participant(self, token: str) -> dict:
        """Map a participant token to its deal and role."""
        if not token:
            raise ParticipantNotFoundException()
        with self.db.session("resolve_participant", read_only=True) as session:
            participant = session.get(DealParticipant, token)
            if participant is None:
                raise ParticipantNotFoundException()
            return {"deal_id": participant.deal_id, "role": ParticipantRole(participant.role).value}

    def authorize(self, token: str, deal_id: str, *roles: ParticipantRole) -> ParticipantRole:
        """
        Check that a token belongs to the deal (and to one of `roles`, if given).

        Raises:
            ParticipantNotFoundException: unknown token
            ParticipantForbiddenException: token for another deal or role
        """
        participant = self.resolve_participant(token)
        if participant["deal_id"] != deal_id:
            raise ParticipantForbiddenException(deal_id, "token belongs to another deal")
        role = ParticipantRole(participant["role"])
        if roles and role not in roles:
            allowed = " or ".join(r.value for r in roles)
            raise ParticipantForbiddenException(deal_id, f"action requires the {allowed} role")
        return role

    def submit_buyer_terms(
        self,
        deal_id: str,
        buyer_max: float,
        buyer_initial_offer: float,
        buyer_urgency: str = "medium",
    ) -> dict:
        """Record the buyer's bounds. Deal status is left to the state machine."""
        buyer_max = _require_amount(buyer_max, "buyer_max")
        buyer_initial_offer = _require_amount(buyer_initial_offer, "buyer_initial_offer")
        if buyer_initial_offer > buyer_max:
            raise ValidationException(
                "buyer_initial_offer cannot exceed buyer_max",
                field_errors=[{"field": "buyer_initial_offer", "msg": "must be <= buyer_max"}]
            )
        urgency = _parse_urgency(buyer_urgency, "buyer_urgency")

        with self.db.session("submit_buyer_terms") as session:
            deal = self._load_deal(session, deal_id)
            self._ensure_open(deal)
            terms = self._load_terms(session, deal_id)
            terms.buyer_max = buyer_max
            terms.buyer_initial_offer = buyer_initial_offer
            terms.buyer_urgency = urgency
            terms.updated_at = datetime.utcnow()

            logger.info(f"Deal {deal_id}: buyer terms submitted (urgency={urgency.value})")
            return {
                "deal_id": deal_id,
                "status": DealStatus(deal.status).value,
                "buyer_max": buyer_max,
                "buyer_initial_offer": buyer_initial_offer,
                "buyer_urgency": urgency.value,
            }

    # ------------------------------------------------------------------
    # Transcript and views
    # ------------------------------------------------------------------

    def post_message(self, deal_id: str, role, content: str) -> dict:
        """Append a buyer or seller chat message to the transcript."""
        role = parse_role(role)
        content = (content or "").strip()
        if not content or len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationException(
                "Message content must not be empty",
                field_errors=[{"field": "content", "msg": f"must be 1..{MAX_MESSAGE_LENGTH} characters"}]
            )

        with self.db.session("post_message") as session:
            self._load_deal(session, deal_id)
            message = self._append_message(session, deal_id, SenderRole(role.value), content)
            logger.debug(f"Deal {deal_id}: {role.value} posted a message ({len(content)} chars)")
            return _message_dict(message)

    def list_messages(self, deal_id: str) -> list[dict]:
        with self.db.session("list_messages", read_only=True) as session:
            self._load_deal(session, deal_id)
            return self._transcript(session, deal_id)

    def get_deal_view(self, deal_id: str, role) -> dict:
        """
        Deal as seen by one participant.

        Terms are redacted to the viewer's own side: the seller never sees the
        buyer's bounds and the buyer never sees the seller's.
        """
        role = parse_role(role)
        with self.db.session("get_deal_view", read_only=True) as session:
            deal = self._load_deal(session, deal_id)
            terms = self._load_terms(session, deal_id)

            if role == ParticipantRole.SELLER:
                own_terms = {
                    "seller_initial": terms.seller_initial,
                    "seller_min": terms.seller_min,
                    "seller_min_current": terms.seller_min_current,
                    "seller_urgency": terms.seller_urgency.value,
                    "buyer_joined": terms.buyer_max is not None,
                }
            else:
                own_terms = {
                    "buyer_max": terms.buyer_max,
                    "buyer_initial_offer": terms.buyer_initial_offer,
                    "buyer_urgency": terms.buyer_urgency.value if terms.buyer_urgency else None,
                }

            latest = self.ledger.latest_offer(session, deal_id)
            live = self.ledger.current_zone_offer(session, deal_id, deal.status)

            return {
                "deal_id": deal.id,
                "role": role.value,
                "status": DealStatus(deal.status).value,
                "product": {
                    "title": deal.product_title,
                    "description": deal.product_description,
                    "public_price": deal.product_price_public,
                    "image_url": deal.product_image_url,
                },
                "terms": own_terms,
                "latest_offer": _offer_dict(latest, live is not None) if latest else None,
                "messages": self._transcript(session, deal_id),
            }

    def list_deals(self, owner_id: str) -> list[dict]:
        """Owner dashboard: the owner's deals, newest first."""
        with self.db.session("list_deals", read_only=True) as session:
            stmt = select(Deal).where(Deal.owner_id == owner_id).order_by(Deal.created_at.desc())
            return [
                {
                    "deal_id": d.id,
                    "title": d.product_title,
                    "public_price": d.product_price_public,
                    "status": DealStatus(d.status).value,
                    "created_at": d.created_at.isoformat(),
                    "updated_at": d.updated_at.isoformat(),
                }
                for d in session.execute(stmt).scalars()
            ]

    # ------------------------------------------------------------------
    # Offer protocol
    # ------------------------------------------------------------------

    async def propose(self, deal_id: str) -> ProposeOutcome:
        """
        Generate a counter-offer for the deal.

        Idempotent while the deal is pending_seller: the live offer is returned
        and no second offer is created. A pending offer that no longer fits the
        current zone is stale; the deal is reopened and a fresh offer proposed.

        Raises:
            DealNotFoundException / TermsNotFoundException
            DealClosedException: deal is accepted or rejected
            ValidationException: buyer terms missing
        """
        # Store phases run in worker threads so lock waits never stall the loop
        existing, context = await asyncio.to_thread(self._prepare_proposal, deal_id)
        if existing is not None:
            return existing

        # No transaction is open while drafting
        draft = await self.mediator.draft(
            context.product, context.terms, context.heuristic, context.transcript
        )
        return await asyncio.to_thread(self._commit_proposal, deal_id, context.heuristic, draft)

    def _pending_outcome(self, offer, message: Optional[str] = None) -> ProposeOutcome:
        return ProposeOutcome(
            pending_seller=True,
            no_zone=False,
            proposed_price=offer.proposed_price if offer else None,
            offer_id=offer.id if offer else None,
            created=False,
            message=message,
        )

    def _prepare_proposal(self, deal_id: str):
        with self.db.session("propose:prepare") as session:
            deal = self._load_deal(session, deal_id)
            self._ensure_open(deal)
            terms = TermsSnapshot.from_row(self._load_terms(session, deal_id))
            heuristic = compute_offer(terms)

            if deal.status == DealStatus.PENDING_SELLER:
                live = self.ledger.current_zone_offer(session, deal_id, deal.status)
                if live is not None and self._is_consistent(live, heuristic):
                    self.state_machine.apply(session, deal_id, Trigger.PROPOSE_REPEATED, deal.status)
                    logger.info(f"Deal {deal_id}: propose repeated, returning live offer {live.id}")
                    return self._pending_outcome(live), None

                stale_id = live.id if live is not None else None
                logger.info(f"Deal {deal_id}: pending offer {stale_id} is stale, reopening")
                self.state_machine.apply(session, deal_id, Trigger.STALE_OFFER, deal.status)

            context = _ProposeContext(
                product=ProductSnapshot(
                    title=deal.product_title,
                    description=deal.product_description,
                    public_price=deal.product_price_public,
                ),
                terms=terms,
                heuristic=heuristic,
                transcript=self._transcript(session, deal_id),
            )
            return None, context

    def _commit_proposal(self, deal_id: str, drafted: HeuristicResult, draft: MediatorDraft) -> ProposeOutcome:
        with self.db.session("propose:commit") as session:
            deal = self._load_deal(session, deal_id)
            self._ensure_open(deal)

            if deal.status == DealStatus.PENDING_SELLER:
                # A concurrent propose created the offer while we were drafting
                live = self.ledger.current_zone_offer(session, deal_id, deal.status)
                logger.info(f"Deal {deal_id}: concurrent propose already created offer {live.id if live else None}")
                return self._pending_outcome(live)

            # Terms may have moved while drafting; the fresh computation wins
            heuristic = compute_offer(TermsSnapshot.from_row(self._load_terms(session, deal_id)))
            if heuristic != drafted:
                logger.info(f"Deal {deal_id}: terms changed during drafting, using templated message")
                draft = self.mediator.fallback(heuristic, "terms changed during drafting")

            if not heuristic.has_zone:
                self.state_machine.apply(session, deal_id, Trigger.NO_ZONE, deal.status)
                self._append_message(session, deal_id, SenderRole.MEDIATOR, draft.message)
                logger.info(f"Deal {deal_id}: no zone of agreement, informational price {format_money(heuristic.price)}")
                return ProposeOutcome(
                    pending_seller=False,
                    no_zone=True,
                    proposed_price=heuristic.price,
                    message=draft.message,
                )

            assert_within_zone(heuristic, draft.price)

            transition = self.state_machine.apply(session, deal_id, Trigger.OFFER_CREATED, deal.status)
            if not transition.applied:
                live = self.ledger.current_zone_offer(session, deal_id, DealStatus.PENDING_SELLER)
                return self._pending_outcome(live)

            offer = self.ledger.create_offer(session, deal_id, draft.price, draft.rationale)
            self._append_message(session, deal_id, SenderRole.MEDIATOR, draft.message)
            logger.info(
                f"Deal {deal_id}: offer {offer.id} proposed at {format_money(draft.price)} "
                f"(message source: {draft.source})"
            )
            return ProposeOutcome(
                pending_seller=True,
                no_zone=False,
                proposed_price=offer.proposed_price,
                offer_id=offer.id,
                created=True,
                message=draft.message,
            )

    def respond(self, deal_id: str, offer_id: str, role, action) -> RespondOutcome:
        """
        Record one party's answer to the live offer and apply the joint outcome.

        Raises:
            ValidationException: invalid role or action
            DealNotFoundException / OfferNotFoundException
            DealClosedException: deal already closed
            OfferNotLiveException: offer is not the deal's live offer
            OfferAlreadyAnsweredException: role tries to change its answer
        """
        role = parse_role(role)
        action = parse_action(action)

        with self.db.session("respond") as session:
            deal = self._load_deal(session, deal_id)
            offer = self.ledger.get_offer(session, deal_id, offer_id)
            if offer is None:
                raise OfferNotFoundException(deal_id, offer_id)
            self._ensure_open(deal)

            latest = self.ledger.latest_offer(session, deal_id)
            if deal.status != DealStatus.PENDING_SELLER or latest is None or latest.id != offer_id:
                raise OfferNotLiveException(deal_id, offer_id)

            record = self.ledger.record_response(session, deal_id, offer_id, role, action)
            price = format_money(record.offer.proposed_price)
            notices = []
            closed = reopened = False

            if record.outcome == JointOutcome.BOTH_ACCEPTED:
                result = self.state_machine.apply(session, deal_id, Trigger.BOTH_ACCEPTED, DealStatus.PENDING_SELLER)
                if result.applied:
                    closed = True
                    notices.append(f"Deal closed at {price}. Both parties accepted the proposal.")
            elif record.outcome == JointOutcome.REJECTED:
                result = self.state_machine.apply(session, deal_id, Trigger.REJECTED, DealStatus.PENDING_SELLER)
                if result.applied:
                    if result.to_status == DealStatus.REJECTED:
                        closed = True
                        notices.append(f"The {role.value} rejected the proposal of {price}. The deal is closed.")
                    else:
                        reopened = True
                        notices.append(
                            f"The {role.value} rejected the proposal of {price}. "
                            f"Negotiation is open again."
                        )
            elif record.changed:
                other = ParticipantRole.SELLER if role == ParticipantRole.BUYER else ParticipantRole.BUYER
                notices.append(f"The {role.value} accepted the proposal of {price}. Waiting for the {other.value}.")

            for notice in notices:
                self._append_message(session, deal_id, SenderRole.MEDIATOR, notice)

            status = self._load_deal(session, deal_id).status
            return RespondOutcome(
                ok=True,
                deal_status=DealStatus(status).value,
                buyer_status=record.offer.buyer_status.value if record.offer.buyer_status else None,
                seller_status=record.offer.seller_status.value if record.offer.seller_status else None,
                closed=closed,
                reopened=reopened,
                notices=notices,
            )

    def adjust_seller_min(self, deal_id: str, new_min: float) -> dict:
        """
        Move the seller's current floor and force the deal back to active.

        The direction of the move is unconstrained. A pending offer stops being
        live because the deal leaves pending_seller.

        Raises:
            ValidationException: new_min not a positive number
            DealClosedException: deal already closed, also when it closes
                concurrently; the new minimum is then not stored
        """
        new_min = _require_amount(new_min, "seller_min_current")

        with self.db.session("adjust_seller_min") as session:
            deal = self._load_deal(session, deal_id)
            self._ensure_open(deal)
            terms = self._load_terms(session, deal_id)

            previous_status = DealStatus(deal.status)
            terms.seller_min_current = new_min
            terms.updated_at = datetime.utcnow()
            session.flush()

            result = self.state_machine.apply(session, deal_id, Trigger.MIN_ADJUSTED, previous_status)
            if not result.applied:
                # Status moved between the read and the guarded write
                deal = self._load_deal(session, deal_id)
                self._ensure_open(deal)
                previous_status = DealStatus(deal.status)
                result = self.state_machine.apply(session, deal_id, Trigger.MIN_ADJUSTED, previous_status)
                if not result.applied:
                    raise InvalidTransitionException(deal_id, previous_status.value, Trigger.MIN_ADJUSTED.value)

            self._append_message(
                session, deal_id, SenderRole.MEDIATOR,
                "The seller updated their minimum. Negotiation is open; request a new proposal."
            )
            logger.info(f"Deal {deal_id}: seller_min_current adjusted ({previous_status.value} -> active)")
            return {
                "ok": True,
                "deal_status": DealStatus.ACTIVE.value,
                "seller_min_current": new_min,
            }

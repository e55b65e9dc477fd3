"""
Unit tests for database schema validation.

WHAT: Test ORM models, constraints and the session scope
WHY: Ensure database integrity and proper constraint enforcement
HOW: Insert valid/invalid rows through Database.session
"""

import threading
import time

import pytest
from sqlalchemy import text

from negotiator.core.models import Deal, DealTerms, Offer, DealParticipant, ParticipantRole, DealStatus
from negotiator.utils.exceptions import PersistenceException


@pytest.fixture
def deal_id(database):
    with database.session("seed") as session:
        deal = Deal(owner_id="owner", product_title="Camera", product_price_public=400.0)
        session.add(deal)
        session.flush()
        return deal.id


@pytest.mark.unit
class TestSchema:

    def test_deal_defaults_to_active(self, database, deal_id):
        with database.session("t") as session:
            deal = session.get(Deal, deal_id)
            assert deal.status == DealStatus.ACTIVE
            assert deal.created_at is not None

    def test_seller_min_above_initial_is_rejected(self, database, deal_id):
        with pytest.raises(PersistenceException) as exc_info:
            with database.session("bad terms") as session:
                session.add(DealTerms(
                    deal_id=deal_id, seller_initial=100.0, seller_min=200.0, seller_min_current=200.0,
                ))
        assert exc_info.value.details["retryable"] is True

    def test_one_terms_row_per_deal(self, database, deal_id):
        with database.session("t") as session:
            session.add(DealTerms(deal_id=deal_id, seller_initial=500.0, seller_min=300.0, seller_min_current=300.0))
        with pytest.raises(PersistenceException):
            with database.session("t") as session:
                session.add(DealTerms(deal_id=deal_id, seller_initial=500.0, seller_min=300.0, seller_min_current=300.0))

    def test_offer_price_must_be_positive(self, database, deal_id):
        with pytest.raises(PersistenceException):
            with database.session("t") as session:
                session.add(Offer(deal_id=deal_id, proposed_price=0.0))

    def test_one_token_per_role(self, database, deal_id):
        with database.session("t") as session:
            session.add(DealParticipant(token="tok-a", deal_id=deal_id, role=ParticipantRole.BUYER))
        with pytest.raises(PersistenceException):
            with database.session("t") as session:
                session.add(DealParticipant(token="tok-b", deal_id=deal_id, role=ParticipantRole.BUYER))

    def test_foreign_keys_enforced(self, database):
        with pytest.raises(PersistenceException):
            with database.session("t") as session:
                session.add(Offer(deal_id="missing-deal", proposed_price=10.0))

    def test_failed_transaction_leaves_no_partial_write(self, database, deal_id):
        with pytest.raises(PersistenceException):
            with database.session("t") as session:
                session.add(Offer(deal_id=deal_id, proposed_price=10.0))
                session.flush()
                session.add(Offer(deal_id=deal_id, proposed_price=-1.0))

        with database.session("t") as session:
            assert session.query(Offer).count() == 0

    def test_non_database_errors_propagate_unchanged(self, database, deal_id):
        with pytest.raises(KeyError):
            with database.session("t") as session:
                session.add(Offer(deal_id=deal_id, proposed_price=10.0))
                session.flush()
                raise KeyError("boom")

        with database.session("t") as session:
            assert session.query(Offer).count() == 0


@pytest.mark.unit
class TestDatabaseLifecycle:

    def test_wal_mode(self, database):
        with database.engine.connect() as conn:
            assert conn.execute(text("PRAGMA journal_mode")).scalar().lower() == "wal"

    def test_ping(self, database):
        assert database.ping() == {"available": True, "error": None}

    def test_read_only_session_does_not_wait_for_writer(self, database, deal_id):
        writer_holds_lock = threading.Event()
        release = threading.Event()

        def hold_write_lock():
            with database.session("writer") as session:
                session.execute(text("UPDATE deals SET owner_id = owner_id"))
                writer_holds_lock.set()
                release.wait(5)

        writer = threading.Thread(target=hold_write_lock)
        writer.start()
        try:
            assert writer_holds_lock.wait(5)
            started = time.monotonic()
            with database.session("reader", read_only=True) as session:
                assert session.get(Deal, deal_id) is not None
            assert time.monotonic() - started < 0.5
        finally:
            release.set()
            writer.join()

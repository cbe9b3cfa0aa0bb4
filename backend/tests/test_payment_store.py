"""
test_payment_store.py - Unit tests for the in-memory payment session manager.

Covers the state machine (pending → paid / pending → expired, both terminal),
lazy expiry on read, token disclosure rules and the paywall decision table.
Time is driven by ManualClock - no sleeps.
"""
from urllib.parse import parse_qs, urlparse

import pytest

from backend.agents.payment_agent.store import (
    GateDecision,
    PaymentStatus,
    PaymentStore,
    build_pay_url,
)
from backend.errors import ImageGenerationError, PaymentExpired, PaymentNotFound

from conftest import START_MS, TTL_SECONDS

BASE_URL = "https://mirror.example.com/"


def _create(store: PaymentStore, render_ok, amount=None):
    session, _ = store.create(BASE_URL, render_ok, amount=amount)
    return session


class TestCreate:
    """create() - identifiers, deadline, pay_url, QR-before-commit."""

    def test_new_session_is_pending_with_deadline(self, store, render_ok):
        session = _create(store, render_ok)

        assert session.status is PaymentStatus.pending
        assert session.amount == 2
        assert session.created_at == START_MS
        assert session.expires_at == START_MS + TTL_SECONDS * 1000
        assert session.paid_at is None
        assert len(store) == 1

    def test_explicit_amount_is_kept(self, store, render_ok):
        assert _create(store, render_ok, amount=9.9).amount == 9.9

    def test_id_and_token_are_distinct_and_unique(self, store, render_ok):
        sessions = [_create(store, render_ok) for _ in range(50)]
        ids = {s.id for s in sessions}
        tokens = {s.token for s in sessions}

        assert len(ids) == 50
        assert len(tokens) == 50
        assert ids.isdisjoint(tokens)
        assert all(len(s.token) == 36 for s in sessions)

    def test_pay_url_embeds_id_and_token(self, store, render_ok):
        session = _create(store, render_ok)
        url = urlparse(session.pay_url)
        query = parse_qs(url.query)

        assert f"{url.scheme}://{url.netloc}" == "https://mirror.example.com"
        assert url.path == "/pay-wallet"
        assert query["paymentId"] == [session.id]
        assert query["token"] == [session.token]
        render_ok.assert_called_once_with(session.pay_url)

    def test_render_failure_stores_nothing(self, store):
        def broken(_payload: str) -> str:
            raise ImageGenerationError()

        with pytest.raises(ImageGenerationError):
            store.create(BASE_URL, broken)
        assert len(store) == 0

    def test_build_pay_url_strips_trailing_slashes(self):
        url = build_pay_url("  http://host:8787///  ", "abc", "tok")
        assert url == "http://host:8787/pay-wallet?paymentId=abc&token=tok"


class TestLifecycle:
    """confirm() / get_status() and lazy expiry."""

    def test_confirm_marks_paid_and_records_time(self, store, render_ok, clock):
        session = _create(store, render_ok)
        clock.advance(seconds=30)

        confirmed = store.confirm(session.id)

        assert confirmed.status is PaymentStatus.paid
        assert confirmed.paid_at == START_MS + 30_000
        assert confirmed.token == session.token
        assert store.get_status(session.id).status is PaymentStatus.paid

    def test_confirm_twice_keeps_first_paid_at(self, store, render_ok, clock):
        session = _create(store, render_ok)
        first = store.confirm(session.id)
        clock.advance(seconds=10)
        second = store.confirm(session.id)

        assert second.paid_at == first.paid_at

    def test_pending_session_expires_on_read_after_deadline(self, store, render_ok, clock):
        session = _create(store, render_ok)
        clock.advance(seconds=TTL_SECONDS, ms=1)

        assert store.get_status(session.id).status is PaymentStatus.expired

    def test_session_still_pending_exactly_at_deadline(self, store, render_ok, clock):
        session = _create(store, render_ok)
        clock.advance(seconds=TTL_SECONDS)

        assert store.get_status(session.id).status is PaymentStatus.pending

    def test_confirm_after_deadline_fails_even_without_prior_read(self, store, render_ok, clock):
        session = _create(store, render_ok)
        clock.advance(seconds=TTL_SECONDS + 1)

        with pytest.raises(PaymentExpired):
            store.confirm(session.id)
        assert store.get_status(session.id).status is PaymentStatus.expired

    def test_expired_never_becomes_paid(self, store, render_ok, clock):
        session = _create(store, render_ok)
        clock.advance(seconds=TTL_SECONDS + 1)
        assert store.get_status(session.id).status is PaymentStatus.expired

        with pytest.raises(PaymentExpired):
            store.confirm(session.id)
        assert store.get_status(session.id).status is PaymentStatus.expired

    def test_paid_session_never_expires(self, store, render_ok, clock):
        session = _create(store, render_ok)
        store.confirm(session.id)
        clock.advance(seconds=TTL_SECONDS * 10)

        assert store.get_status(session.id).status is PaymentStatus.paid
        assert store.validate(session.id, session.token)

    def test_unknown_id_raises_not_found(self, store):
        with pytest.raises(PaymentNotFound):
            store.get_status("missing")
        with pytest.raises(PaymentNotFound):
            store.confirm("missing")
        assert store.get("missing") is None

    def test_returned_sessions_are_snapshots(self, store, render_ok):
        session = _create(store, render_ok)
        session.status = PaymentStatus.paid

        assert store.get_status(session.id).status is PaymentStatus.pending


class TestConfirmScan:
    """confirm_scan() - the QR wallet callback needs id AND matching token."""

    def test_matching_token_marks_paid(self, store, render_ok):
        session = _create(store, render_ok)
        assert store.confirm_scan(session.id, session.token).status is PaymentStatus.paid

    @pytest.mark.parametrize("token", [None, "", "wrong-token"])
    def test_bad_token_is_not_found_and_leaves_session_pending(self, store, render_ok, token):
        session = _create(store, render_ok)

        with pytest.raises(PaymentNotFound):
            store.confirm_scan(session.id, token)
        assert store.get_status(session.id).status is PaymentStatus.pending

    def test_expired_scan_fails(self, store, render_ok, clock):
        session = _create(store, render_ok)
        clock.advance(seconds=TTL_SECONDS + 1)

        with pytest.raises(PaymentExpired):
            store.confirm_scan(session.id, session.token)


class TestAuthorize:
    """authorize() / validate() - the paywall decision table."""

    def test_no_identifying_input(self, store):
        assert store.authorize(None, None) is GateDecision.payment_required
        assert store.authorize("", "") is GateDecision.payment_required
        assert store.validate() is False

    def test_unknown_id(self, store):
        assert store.authorize("missing", None) is GateDecision.not_found

    def test_pending_session_is_not_paid(self, store, render_ok):
        session = _create(store, render_ok)
        assert store.authorize(session.id, session.token) is GateDecision.not_paid
        assert store.validate(session.id, session.token) is False

    def test_expired_session(self, store, render_ok, clock):
        session = _create(store, render_ok)
        clock.advance(seconds=TTL_SECONDS + 1)
        assert store.authorize(session.id, session.token) is GateDecision.expired

    def test_paid_with_matching_token(self, store, render_ok):
        session = _create(store, render_ok)
        store.confirm(session.id)
        assert store.authorize(session.id, session.token) is GateDecision.ok
        assert store.validate(session.id, session.token) is True

    def test_paid_with_wrong_token(self, store, render_ok):
        session = _create(store, render_ok)
        store.confirm(session.id)
        assert store.authorize(session.id, "wrong") is GateDecision.token_invalid

    def test_paid_with_id_only(self, store, render_ok):
        session = _create(store, render_ok)
        store.confirm(session.id)
        assert store.validate(session.id, None) is True

    def test_token_only_finds_paid_session_by_scan(self, store, render_ok):
        _create(store, render_ok)
        session = _create(store, render_ok)
        store.confirm(session.id)

        assert store.validate(None, session.token) is True

    def test_token_only_unpaid_match(self, store, render_ok):
        session = _create(store, render_ok)
        assert store.authorize(None, session.token) is GateDecision.not_paid

    def test_token_only_no_match(self, store, render_ok):
        session = _create(store, render_ok)
        store.confirm(session.id)
        assert store.authorize(None, "not-a-token") is GateDecision.not_found

    def test_unknown_id_falls_back_to_token_scan(self, store, render_ok):
        session = _create(store, render_ok)
        store.confirm(session.id)
        assert store.validate("stale-id", session.token) is True

    def test_token_of_another_session_is_rejected(self, store, render_ok):
        first = _create(store, render_ok)
        second = _create(store, render_ok)
        store.confirm(first.id)
        store.confirm(second.id)

        assert store.authorize(first.id, second.token) is GateDecision.token_invalid

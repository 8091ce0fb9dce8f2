"""Tests for gig, bid and user models."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from gigboard.errors import ValidationError
from gigboard.market.bids import Bid, BidStatus
from gigboard.market.gigs import Gig, GigStatus
from gigboard.market.users import User, UserRole

from conftest import BID_MESSAGE, make_gig


def make_bid(**overrides) -> Bid:
    fields = dict(id="bid_1", gig_id="gig_1", freelancer_id="freelancer_1", message=BID_MESSAGE, price=400)
    fields.update(overrides)
    return Bid(**fields)


class TestGig:
    def test_defaults(self):
        gig = make_gig()
        assert gig.status == GigStatus.OPEN.value
        assert gig.is_open
        assert not gig.is_assigned
        assert gig.budget == Decimal("500")
        assert gig.hired_bid_id is None

    def test_strips_text_fields(self):
        gig = make_gig(title="  Landing page  ")
        assert gig.title == "Landing page"

    @pytest.mark.parametrize("title", ["Tiny", "x" * 101, "Bad <title>"])
    def test_rejects_bad_titles(self, title):
        with pytest.raises(ValidationError):
            make_gig(title=title)

    def test_rejects_short_description(self):
        with pytest.raises(ValidationError, match="Description"):
            make_gig(description="too short")

    @pytest.mark.parametrize("budget", [0, "0.99", 1_000_001, "abc", float("nan")])
    def test_rejects_out_of_range_budget(self, budget):
        with pytest.raises(ValidationError):
            make_gig(budget=budget)

    def test_accepts_budget_bounds(self):
        assert make_gig(budget=1).budget == Decimal("1")
        assert make_gig(budget=1_000_000).budget == Decimal("1000000")

    def test_rejects_unknown_status(self):
        with pytest.raises(ValidationError, match="status"):
            make_gig(status="closed")

    def test_dict_roundtrip_keeps_hire_fields(self):
        hired_at = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        gig = make_gig(
            status=GigStatus.ASSIGNED,
            hired_at=hired_at,
            hired_by="client_1",
            hired_freelancer_id="freelancer_1",
            hired_bid_id="bid_1",
        )
        restored = Gig.from_dict(gig.to_dict())
        assert restored.status == "assigned"
        assert restored.hired_at == hired_at
        assert restored.hired_bid_id == "bid_1"
        assert restored.budget == gig.budget


class TestBid:
    def test_defaults(self):
        bid = make_bid()
        assert bid.status == BidStatus.PENDING.value
        assert bid.is_pending
        assert bid.rejected_reason is None

    def test_rejects_short_message(self):
        with pytest.raises(ValidationError, match="message"):
            make_bid(message="hi")

    def test_rejects_long_rejection_reason(self):
        with pytest.raises(ValidationError, match="reason"):
            make_bid(status=BidStatus.REJECTED, rejected_reason="x" * 201)

    @pytest.mark.parametrize("price", [0, -5, 1_000_001])
    def test_rejects_out_of_range_price(self, price):
        with pytest.raises(ValidationError, match="price"):
            make_bid(price=price)

    def test_from_dict_parses_strings(self):
        bid = Bid.from_dict(
            {
                "id": "bid_9",
                "gig_id": "gig_9",
                "freelancer_id": "f_9",
                "message": BID_MESSAGE,
                "price": "250.50",
                "status": "hired",
                "created_at": "2026-03-01T10:00:00Z",
                "hired_at": "2026-03-02T10:00:00+00:00",
            }
        )
        assert bid.price == Decimal("250.50")
        assert bid.is_hired
        assert bid.hired_at.tzinfo is not None


class TestUser:
    def test_email_is_normalized(self):
        user = User(id="u1", name="Ada", email="  Ada@Example.COM ", password_hash="x")
        assert user.email == "ada@example.com"
        assert user.role == UserRole.USER.value

    def test_rejects_bad_email(self):
        with pytest.raises(ValidationError, match="email"):
            User(id="u1", name="Ada", email="not-an-email", password_hash="x")

    def test_public_dict_hides_password(self):
        user = User(id="u1", name="Ada", email="ada@example.com", password_hash="secret")
        assert "password_hash" not in user.to_public_dict()

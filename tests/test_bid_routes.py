"""Tests for the bid, hire and maintenance endpoints."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from gigboard.market.users import UserRole

from conftest import BID_MESSAGE, GIG_DESCRIPTION


@pytest.fixture
def market(client, make_user):
    """An owner with one open gig and three freelancers."""
    owner, owner_headers = make_user("Client One")
    freelancers = [make_user(f"Freelancer {i}") for i in range(3)]
    gig = client.post(
        "/api/gigs",
        json={"title": "Landing page", "description": GIG_DESCRIPTION, "budget": 500},
        headers=owner_headers,
    ).json()
    return owner_headers, freelancers, gig


def place_bid(client, gig_id, headers, price=300):
    return client.post("/api/bids", json={"gigId": gig_id, "message": BID_MESSAGE, "price": price}, headers=headers)


class TestSubmitBid:
    def test_submit(self, client, market):
        _, freelancers, gig = market
        user, headers = freelancers[0]

        response = place_bid(client, gig["id"], headers)

        assert response.status_code == 201
        body = response.json()
        assert body["freelancer_id"] == user.id
        assert body["status"] == "pending"
        assert body["price"] == 300.0

    def test_snake_case_gig_id_is_accepted(self, client, market):
        _, freelancers, gig = market

        response = client.post(
            "/api/bids", json={"gig_id": gig["id"], "message": BID_MESSAGE, "price": 300}, headers=freelancers[0][1]
        )

        assert response.status_code == 201
        assert response.json()["gig_id"] == gig["id"]

    def test_missing_gig_id(self, client, market):
        _, freelancers, _ = market

        response = client.post("/api/bids", json={"message": BID_MESSAGE, "price": 300}, headers=freelancers[0][1])

        assert response.status_code == 400
        assert "gigId" in response.json()["detail"]

    def test_owner_cannot_bid(self, client, market):
        owner_headers, _, gig = market

        response = place_bid(client, gig["id"], owner_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "You cannot bid on your own gig"

    def test_duplicate_bid(self, client, market):
        _, freelancers, gig = market
        _, headers = freelancers[0]
        place_bid(client, gig["id"], headers)

        assert place_bid(client, gig["id"], headers, price=250).status_code == 409

    def test_unknown_gig(self, client, market):
        _, freelancers, _ = market
        assert place_bid(client, "missing", freelancers[0][1]).status_code == 404

    def test_message_too_short(self, client, market):
        _, freelancers, gig = market

        response = client.post(
            "/api/bids", json={"gig_id": gig["id"], "message": "hi", "price": 300}, headers=freelancers[0][1]
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Validation failed")


class TestViewBids:
    def test_owner_lists_gig_bids(self, client, market):
        owner_headers, freelancers, gig = market
        for _, headers in freelancers:
            place_bid(client, gig["id"], headers)

        response = client.get(f"/api/bids/{gig['id']}", headers=owner_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["gig"]["id"] == gig["id"]

    def test_gig_bids_pagination(self, client, market):
        owner_headers, freelancers, gig = market
        for _, headers in freelancers:
            place_bid(client, gig["id"], headers)

        body = client.get(f"/api/bids/{gig['id']}", params={"limit": 2, "page": 2}, headers=owner_headers).json()

        assert len(body["bids"]) == 1
        assert body["total"] == 3
        assert body["pagination"]["total_pages"] == 2
        assert body["pagination"]["has_prev_page"] is True
        assert body["pagination"]["has_next_page"] is False

    def test_freelancer_cannot_list_gig_bids(self, client, market):
        _, freelancers, gig = market
        assert client.get(f"/api/bids/{gig['id']}", headers=freelancers[0][1]).status_code == 403

    def test_my_bids_and_details(self, client, market, make_user):
        owner_headers, freelancers, gig = market
        _, headers = freelancers[0]
        bid = place_bid(client, gig["id"], headers).json()

        mine = client.get("/api/bids/my-bids", headers=headers).json()
        assert [b["id"] for b in mine["bids"]] == [bid["id"]]
        assert mine["pagination"]["total"] == 1

        for viewer in (headers, owner_headers):
            detail = client.get(f"/api/bids/bid/{bid['id']}", headers=viewer)
            assert detail.status_code == 200
            assert detail.json()["gig"]["id"] == gig["id"]

        _, stranger = make_user("Stranger")
        assert client.get(f"/api/bids/bid/{bid['id']}", headers=stranger).status_code == 403

    def test_withdraw(self, client, market):
        _, freelancers, gig = market
        _, headers = freelancers[0]
        bid = place_bid(client, gig["id"], headers).json()

        assert client.delete(f"/api/bids/{bid['id']}", headers=freelancers[1][1]).status_code == 403

        response = client.delete(f"/api/bids/{bid['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Bid withdrawn successfully"
        assert client.get(f"/api/bids/bid/{bid['id']}", headers=headers).status_code == 404


class TestHire:
    def test_hire_assigns_gig_and_rejects_others(self, client, market):
        owner_headers, freelancers, gig = market
        bids = [place_bid(client, gig["id"], headers).json() for _, headers in freelancers]
        chosen = bids[1]

        response = client.patch(f"/api/bids/{chosen['id']}/hire", headers=owner_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["bid"]["status"] == "hired"
        assert body["gig"]["status"] == "assigned"
        assert body["gig"]["hired_bid_id"] == chosen["id"]
        assert body["gig"]["hired_freelancer_id"] == chosen["freelancer_id"]
        assert body["rejected_count"] == 2

        listing = client.get(f"/api/bids/{gig['id']}", headers=owner_headers).json()
        statuses = {b["id"]: b["status"] for b in listing["bids"]}
        assert statuses == {bids[0]["id"]: "rejected", chosen["id"]: "hired", bids[2]["id"]: "rejected"}

    def test_only_owner_can_hire(self, client, market):
        _, freelancers, gig = market
        bid = place_bid(client, gig["id"], freelancers[0][1]).json()

        assert client.patch(f"/api/bids/{bid['id']}/hire", headers=freelancers[1][1]).status_code == 403

    def test_second_hire_conflicts(self, client, market):
        owner_headers, freelancers, gig = market
        first, second = (place_bid(client, gig["id"], h).json() for _, h in freelancers[:2])

        assert client.patch(f"/api/bids/{first['id']}/hire", headers=owner_headers).status_code == 200
        response = client.patch(f"/api/bids/{second['id']}/hire", headers=owner_headers)

        assert response.status_code == 409
        assert client.patch(f"/api/bids/{first['id']}/hire", headers=owner_headers).status_code == 409

    def test_unknown_bid(self, client, market):
        owner_headers, _, _ = market
        assert client.patch("/api/bids/missing/hire", headers=owner_headers).status_code == 404

    def test_bidding_closed_after_hire(self, client, market, make_user):
        owner_headers, freelancers, gig = market
        bid = place_bid(client, gig["id"], freelancers[0][1]).json()
        client.patch(f"/api/bids/{bid['id']}/hire", headers=owner_headers)
        _, late_headers = make_user("Late Freelancer")

        response = place_bid(client, gig["id"], late_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot bid on assigned gigs"

    def test_parallel_hires_have_one_winner(self, client, market):
        owner_headers, freelancers, gig = market
        bids = [place_bid(client, gig["id"], h).json() for _, h in freelancers]

        def hire(bid):
            return client.patch(f"/api/bids/{bid['id']}/hire", headers=owner_headers).status_code

        with ThreadPoolExecutor(max_workers=len(bids)) as pool:
            codes = list(pool.map(hire, bids))

        assert sorted(codes) == [200, 409, 409]
        listing = client.get(f"/api/bids/{gig['id']}", headers=owner_headers).json()
        assert [b["status"] for b in listing["bids"]].count("hired") == 1


class TestMaintenance:
    def test_requires_admin(self, client, make_user):
        _, headers = make_user("Regular")

        assert client.get("/api/maintenance/health", headers=headers).status_code == 403
        assert client.post("/api/maintenance/reconcile", json={}, headers=headers).status_code == 403

    def test_health_and_reconcile(self, client, make_user, market, context):
        _, admin_headers = make_user("Admin", role=UserRole.ADMIN.value)
        _, _, gig = market
        # Leave the gig assigned with no hired bid, as a crashed hire would
        asyncio.run(context.gigs.compare_and_swap_status(gig["id"], "open", "assigned", {"hired_bid_id": "gone"}))

        health = client.get("/api/maintenance/health", headers=admin_headers).json()
        assert health["status"] == "action_needed"
        assert health["orphaned_gigs"] == 1

        dry = client.post("/api/maintenance/reconcile", json={"dry_run": True}, headers=admin_headers).json()
        assert dry["actions"][0]["action"] == "would_reopen"

        report = client.post("/api/maintenance/reconcile", json={}, headers=admin_headers).json()
        assert report["actions"] == [
            {"gig_id": gig["id"], "action": "reopened", "reason": "Gig assigned without a hired bid", "bid_ids": []}
        ]
        assert client.get(f"/api/gigs/{gig['id']}", headers=admin_headers).json()["status"] == "open"

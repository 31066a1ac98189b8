"""
Tests for transaction endpoints and the running-balance invariant.

These tests verify:
  - Each entry's balance is the sum of every amount up to and including it,
    in (transaction_date_time, id) order
  - Back-dated inserts, edits that move an entry in time, and deletes all
    leave every balance correct
  - Entries with identical timestamps are ordered by id
  - Listing is newest first and paged
  - Bad input (zero amounts, empty edits, foreign ids) is rejected
  - Concurrent writes to one account still end with correct balances
  - A failed recompute rolls back the write that triggered it
"""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from ledgerbook.services import ledger


async def _record(client, user, account_id, amount, when=None, title="Entry"):
    payload = {"title": title, "amount": amount}
    if when is not None:
        payload["transaction_date_time"] = when
    response = await client.post(
        f"/accounts/{account_id}/transactions", json=payload, headers=user.headers
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _balances(client, user, account_id):
    """{transaction id: balance} for the whole account."""
    response = await client.get(
        f"/accounts/{account_id}/transactions",
        params={"perPage": 100},
        headers=user.headers,
    )
    assert response.status_code == 200, response.text
    return {txn["id"]: txn["balance"] for txn in response.json()["data"]}


class TestCreateTransaction:
    """Tests for POST /accounts/{id}/transactions."""

    async def test_create_returns_running_balance(self, client, account_id, editor):
        data = await _record(client, editor, account_id, "50.00", title="Salary")
        assert data["title"] == "Salary"
        assert data["account_id"] == account_id
        assert data["amount"] == "50.00"
        assert data["balance"] == "50.00"
        assert data["description"] is None

        data = await _record(client, editor, account_id, "-12.25")
        assert data["amount"] == "-12.25"
        assert data["balance"] == "37.75"

    async def test_backdated_insert_shifts_later_balances(self, client, account_id, editor):
        t0 = await _record(client, editor, account_id, "50", "2024-01-01T10:00:00Z")
        t2 = await _record(client, editor, account_id, "-30", "2024-01-03T10:00:00Z")
        assert t2["balance"] == "20.00"

        t1 = await _record(client, editor, account_id, "100", "2024-01-02T10:00:00Z")
        assert t1["balance"] == "150.00"

        assert await _balances(client, editor, account_id) == {
            t0["id"]: "50.00",
            t1["id"]: "150.00",
            t2["id"]: "120.00",
        }

    async def test_insert_before_every_entry(self, client, account_id, editor):
        t1 = await _record(client, editor, account_id, "100", "2024-02-01T10:00:00Z")
        t2 = await _record(client, editor, account_id, "-30", "2024-02-02T10:00:00Z")
        assert (t1["balance"], t2["balance"]) == ("100.00", "70.00")

        t0 = await _record(client, editor, account_id, "50", "2024-01-31T10:00:00Z")
        assert t0["balance"] == "50.00"

        assert await _balances(client, editor, account_id) == {
            t0["id"]: "50.00",
            t1["id"]: "150.00",
            t2["id"]: "120.00",
        }

    async def test_identical_timestamps_ordered_by_id(self, client, account_id, editor):
        when = "2024-05-01T12:00:00Z"
        first = await _record(client, editor, account_id, "10", when)
        second = await _record(client, editor, account_id, "5", when)
        assert first["id"] < second["id"]

        assert await _balances(client, editor, account_id) == {
            first["id"]: "10.00",
            second["id"]: "15.00",
        }

    async def test_zero_amount_rejected(self, client, account_id, editor):
        response = await client.post(
            f"/accounts/{account_id}/transactions",
            json={"title": "Nothing", "amount": "0.00"},
            headers=editor.headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "amount: Amount must be a non-zero number"

    async def test_three_decimal_places_rejected(self, client, account_id, editor):
        response = await client.post(
            f"/accounts/{account_id}/transactions",
            json={"title": "Fraction", "amount": "1.005"},
            headers=editor.headers,
        )
        assert response.status_code == 400

    async def test_missing_title_rejected(self, client, account_id, editor):
        response = await client.post(
            f"/accounts/{account_id}/transactions",
            json={"amount": "1.00"},
            headers=editor.headers,
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("title:")

    async def test_create_in_missing_account(self, client, admin):
        response = await client.post(
            "/accounts/999/transactions",
            json={"title": "Lost", "amount": "1.00"},
            headers=admin.headers,
        )
        assert response.status_code == 404


class TestListTransactions:
    """Tests for GET /accounts/{id}/transactions."""

    async def test_newest_first(self, client, account_id, viewer, editor):
        old = await _record(client, editor, account_id, "1", "2024-01-01T00:00:00Z")
        new = await _record(client, editor, account_id, "2", "2024-03-01T00:00:00Z")
        mid = await _record(client, editor, account_id, "3", "2024-02-01T00:00:00Z")

        response = await client.get(f"/accounts/{account_id}/transactions", headers=viewer.headers)
        body = response.json()
        assert [t["id"] for t in body["data"]] == [new["id"], mid["id"], old["id"]]
        assert body["total"] == 3
        assert body["perPage"] == 25

    async def test_paging(self, client, account_id, editor):
        for day in range(1, 6):
            await _record(client, editor, account_id, "1", f"2024-01-0{day}T00:00:00Z")

        response = await client.get(
            f"/accounts/{account_id}/transactions",
            params={"page": 2, "perPage": 2},
            headers=editor.headers,
        )
        body = response.json()
        assert body["total"] == 5
        assert body["page"] == 2
        # Newest first: day 5, 4 | 3, 2 | 1
        assert [t["balance"] for t in body["data"]] == ["3.00", "2.00"]

    async def test_get_single(self, client, account_id, editor, viewer):
        created = await _record(client, editor, account_id, "7.10", title="Books")
        response = await client.get(
            f"/accounts/{account_id}/transactions/{created['id']}", headers=viewer.headers
        )
        assert response.status_code == 200
        assert response.json()["data"] == created

    async def test_transaction_of_another_account_is_404(self, client, admin, account_id):
        other = await client.post("/accounts", json={"title": "Other"}, headers=admin.headers)
        other_id = other.json()["data"]["id"]
        foreign = await _record(client, admin, other_id, "1.00")

        response = await client.get(
            f"/accounts/{account_id}/transactions/{foreign['id']}", headers=admin.headers
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "transaction_not_found"


class TestUpdateTransaction:
    """Tests for PATCH /accounts/{id}/transactions/{txId}."""

    async def test_amount_change_recomputes_later_entries(self, client, admin, account_id, editor):
        t0 = await _record(client, editor, account_id, "50", "2024-01-01T10:00:00Z")
        t1 = await _record(client, editor, account_id, "100", "2024-01-02T10:00:00Z")
        t2 = await _record(client, editor, account_id, "-30", "2024-01-03T10:00:00Z")

        response = await client.patch(
            f"/accounts/{account_id}/transactions/{t0['id']}",
            json={"amount": "60"},
            headers=admin.headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["balance"] == "60.00"

        assert await _balances(client, editor, account_id) == {
            t0["id"]: "60.00",
            t1["id"]: "160.00",
            t2["id"]: "130.00",
        }

    async def test_moving_an_entry_in_time_reorders_balances(self, client, admin, account_id, editor):
        t0 = await _record(client, editor, account_id, "50", "2024-01-01T10:00:00Z")
        t1 = await _record(client, editor, account_id, "100", "2024-01-02T10:00:00Z")

        response = await client.patch(
            f"/accounts/{account_id}/transactions/{t1['id']}",
            json={"transaction_date_time": "2023-12-31T10:00:00Z"},
            headers=admin.headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["transaction_date_time"] == "2023-12-31T10:00:00Z"

        assert await _balances(client, editor, account_id) == {
            t1["id"]: "100.00",
            t0["id"]: "150.00",
        }

    async def test_title_and_description(self, client, admin, account_id, editor):
        created = await _record(client, editor, account_id, "5")
        path = f"/accounts/{account_id}/transactions/{created['id']}"

        response = await client.patch(
            path, json={"title": "Renamed", "description": "note"}, headers=admin.headers
        )
        data = response.json()["data"]
        assert data["title"] == "Renamed"
        assert data["description"] == "note"
        assert data["balance"] == "5.00"

        response = await client.patch(path, json={"description": None}, headers=admin.headers)
        assert response.status_code == 200
        assert response.json()["data"]["description"] is None
        assert response.json()["data"]["title"] == "Renamed"

    async def test_empty_update_rejected(self, client, admin, account_id, editor):
        created = await _record(client, editor, account_id, "5")
        path = f"/accounts/{account_id}/transactions/{created['id']}"

        for body in ({}, {"balance": "999.00"}, {"title": None}):
            response = await client.patch(path, json=body, headers=admin.headers)
            assert response.status_code == 400, body
            assert response.json()["error"] == "No changes provided"

    async def test_zero_amount_rejected(self, client, admin, account_id, editor):
        created = await _record(client, editor, account_id, "5")
        response = await client.patch(
            f"/accounts/{account_id}/transactions/{created['id']}",
            json={"amount": 0},
            headers=admin.headers,
        )
        assert response.status_code == 400

    async def test_update_in_wrong_account_is_404(self, client, admin, account_id, editor):
        created = await _record(client, editor, account_id, "5")
        other = await client.post("/accounts", json={"title": "Other"}, headers=admin.headers)
        other_id = other.json()["data"]["id"]

        response = await client.patch(
            f"/accounts/{other_id}/transactions/{created['id']}",
            json={"title": "Hijack"},
            headers=admin.headers,
        )
        assert response.status_code == 404


class TestDeleteTransaction:
    """Tests for DELETE /accounts/{id}/transactions/{txId}."""

    async def test_delete_recomputes_later_entries(self, client, admin, account_id, editor):
        t0 = await _record(client, editor, account_id, "50", "2024-01-01T10:00:00Z")
        t1 = await _record(client, editor, account_id, "100", "2024-01-02T10:00:00Z")
        t2 = await _record(client, editor, account_id, "-30", "2024-01-03T10:00:00Z")

        response = await client.delete(
            f"/accounts/{account_id}/transactions/{t1['id']}", headers=admin.headers
        )
        assert response.status_code == 200
        assert response.json()["data"] == {"id": t1["id"], "deleted": True}

        assert await _balances(client, editor, account_id) == {
            t0["id"]: "50.00",
            t2["id"]: "20.00",
        }

    async def test_delete_missing_transaction(self, client, admin, account_id):
        response = await client.delete(
            f"/accounts/{account_id}/transactions/12345", headers=admin.headers
        )
        assert response.status_code == 404


class TestBalance:
    """Tests for GET /accounts/{id}/balance and POST /accounts/{id}/recompute."""

    async def test_empty_account(self, client, account_id, viewer):
        response = await client.get(f"/accounts/{account_id}/balance", headers=viewer.headers)
        assert response.status_code == 200
        assert response.json()["data"] == {
            "account_id": account_id,
            "balance": "0.00",
            "computed_balance": "0.00",
            "match": True,
            "stale_transaction_ids": [],
        }

    async def test_balance_is_latest_entry(self, client, account_id, editor):
        await _record(client, editor, account_id, "50", "2024-01-01T10:00:00Z")
        await _record(client, editor, account_id, "-30", "2024-01-03T10:00:00Z")
        # Recorded last, but dated earliest
        await _record(client, editor, account_id, "100", "2023-06-01T10:00:00Z")

        data = (await client.get(f"/accounts/{account_id}/balance", headers=editor.headers)).json()["data"]
        assert data["balance"] == "120.00"
        assert data["computed_balance"] == "120.00"
        assert data["match"] is True

    async def test_recompute_endpoint(self, client, admin, account_id, editor):
        for amount in ("1", "2", "3"):
            await _record(client, editor, account_id, amount)

        response = await client.post(f"/accounts/{account_id}/recompute", headers=admin.headers)
        assert response.status_code == 200
        assert response.json()["data"] == {"account_id": account_id, "rows_updated": 3}

    async def test_recompute_missing_account(self, client, admin):
        response = await client.post("/accounts/999/recompute", headers=admin.headers)
        assert response.status_code == 404


class TestConcurrentTransactions:
    """
    Concurrent writes to one account.

    Note: SQLite serializes writes, so true parallelism isn't possible.
    These tests still interleave the requests at every await point, which
    is where a recompute could miss a sibling's row if mutations of one
    account weren't serialised.
    """

    async def test_concurrent_creates_keep_invariant(self, client, account_id, editor):
        results = await asyncio.gather(
            *(
                client.post(
                    f"/accounts/{account_id}/transactions",
                    json={"title": f"Entry {n}", "amount": "1.00"},
                    headers=editor.headers,
                )
                for n in range(10)
            )
        )
        assert all(r.status_code == 201 for r in results)

        balances = await _balances(client, editor, account_id)
        assert sorted(balances.values(), key=float) == [f"{n}.00" for n in range(1, 11)]

        data = (await client.get(f"/accounts/{account_id}/balance", headers=editor.headers)).json()["data"]
        assert data["balance"] == "10.00"
        assert data["match"] is True

    async def test_concurrent_writes_to_different_accounts(self, client, admin, editor):
        ids = []
        for title in ("First", "Second"):
            response = await client.post(
                "/accounts", json={"title": title, "editors": [editor.id]}, headers=admin.headers
            )
            ids.append(response.json()["data"]["id"])

        results = await asyncio.gather(
            *(
                client.post(
                    f"/accounts/{account}/transactions",
                    json={"title": "Deposit", "amount": amount},
                    headers=editor.headers,
                )
                for account, amount in ((ids[0], "50.00"), (ids[1], "70.00"))
            )
        )
        assert [r.json()["data"]["balance"] for r in results] == ["50.00", "70.00"]


class TestRecomputeFailure:
    """
    A store error during recompute must roll back the write that triggered
    it. The ledger afterwards looks exactly as it did before the request.
    """

    @pytest.fixture
    def broken_recompute(self, monkeypatch):
        async def fail(db, account_id):
            raise OperationalError("UPDATE transactions", {}, Exception("disk I/O error"))

        def install():
            monkeypatch.setattr(ledger, "recompute", fail)
        return install

    async def _snapshot(self, client, user, account_id):
        response = await client.get(
            f"/accounts/{account_id}/transactions",
            params={"perPage": 100},
            headers=user.headers,
        )
        body = response.json()
        balance = (await client.get(f"/accounts/{account_id}/balance", headers=user.headers)).json()["data"]
        return body["total"], body["data"], balance

    async def _seed(self, client, editor, account_id):
        first = await _record(client, editor, account_id, "100", "2024-01-01T10:00:00Z")
        second = await _record(client, editor, account_id, "-30", "2024-01-03T10:00:00Z")
        return first, second

    def _assert_store_error(self, response):
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "error_type": "store_error"}

    async def test_failed_create_is_rolled_back(self, client, account_id, editor, broken_recompute):
        await self._seed(client, editor, account_id)
        before = await self._snapshot(client, editor, account_id)

        broken_recompute()
        response = await client.post(
            f"/accounts/{account_id}/transactions",
            json={"title": "Backdated", "amount": "50", "transaction_date_time": "2024-01-02T10:00:00Z"},
            headers=editor.headers,
        )
        self._assert_store_error(response)

        after = await self._snapshot(client, editor, account_id)
        assert after == before
        assert after[0] == 2
        assert after[2]["balance"] == "70.00"
        assert after[2]["match"] is True

    async def test_failed_update_is_rolled_back(self, client, admin, account_id, editor, broken_recompute):
        first, _ = await self._seed(client, editor, account_id)
        before = await self._snapshot(client, editor, account_id)

        broken_recompute()
        response = await client.patch(
            f"/accounts/{account_id}/transactions/{first['id']}",
            json={"amount": "500"},
            headers=admin.headers,
        )
        self._assert_store_error(response)

        after = await self._snapshot(client, editor, account_id)
        assert after == before
        assert after[2]["match"] is True

    async def test_failed_delete_is_rolled_back(self, client, admin, account_id, editor, broken_recompute):
        first, _ = await self._seed(client, editor, account_id)
        before = await self._snapshot(client, editor, account_id)

        broken_recompute()
        response = await client.delete(
            f"/accounts/{account_id}/transactions/{first['id']}",
            headers=admin.headers,
        )
        self._assert_store_error(response)

        after = await self._snapshot(client, editor, account_id)
        assert after == before
        assert after[0] == 2
        assert after[2]["match"] is True

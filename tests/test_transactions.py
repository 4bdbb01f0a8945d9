"""
Tests for transaction endpoints (deposits and withdrawals).

These tests verify:
  - Deposits increase and withdrawals decrease the balance
  - Every transaction records the balance after it was applied
  - Withdrawals larger than the balance are rejected with "Insufficient funds"
    and leave no trace (no balance change, no transaction row)
  - Co-owners share one balance; non-owners are rejected without side effects
  - Listing is newest-first with type filter and pagination
  - Concurrent deposits never lose an update
  - The write is committed before the success response is sent
"""

import asyncio
import json
import uuid

from sqlalchemy import func, select

from jointbank.main import app
from jointbank.models.joint_account import JointAccount
from jointbank.models.transaction import Transaction


async def _balance_cents(client, account_id: str, headers: dict | None = None) -> int:
    response = await client.get(f"/accounts/{account_id}/balance", headers=headers)
    return response.json()["data"]["cachedBalanceCents"]


async def _transaction_count(session_factory, account_id: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count())
            .select_from(Transaction)
            .where(Transaction.account_id == uuid.UUID(account_id))
        )
        return result.scalar_one()


class TestDeposit:
    """Tests for DEPOSIT transactions."""

    async def test_deposit_increases_balance(
        self, authenticated_client, joint_account, transact, owner
    ):
        account_id = joint_account["id"]
        response = await transact(
            account_id, type="DEPOSIT", amount=100, description="Paycheck"
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True

        txn = body["data"]
        assert txn["type"] == "DEPOSIT"
        assert txn["amount"] == 100
        assert txn["amountCents"] == 10000
        assert txn["balanceAfter"] == 100
        assert txn["balanceAfterCents"] == 10000
        assert txn["description"] == "Paycheck"
        assert txn["status"] == "COMPLETED"
        assert txn["accountId"] == account_id
        assert txn["processedBy"] == owner["id"]
        assert txn["reference"].startswith("TX-")
        assert len(txn["reference"]) == 15

        assert await _balance_cents(authenticated_client, account_id) == 10000

    async def test_multiple_deposits_accumulate(
        self, authenticated_client, joint_account, transact
    ):
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount="50.00")
        await transact(account_id, type="DEPOSIT", amount="30.00")
        assert await _balance_cents(authenticated_client, account_id) == 8000

    async def test_account_version_increments(
        self, authenticated_client, joint_account, transact
    ):
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount=10)
        await transact(account_id, type="DEPOSIT", amount=10)
        response = await authenticated_client.get(f"/accounts/{account_id}")
        assert response.json()["data"]["version"] == 3

    async def test_zero_amount_rejected(self, joint_account, transact):
        response = await transact(joint_account["id"], type="DEPOSIT", amount=0)
        assert response.status_code == 422

    async def test_negative_amount_rejected(self, joint_account, transact):
        response = await transact(joint_account["id"], type="DEPOSIT", amount=-5)
        assert response.status_code == 422

    async def test_more_than_two_decimals_rejected(self, joint_account, transact):
        response = await transact(joint_account["id"], type="DEPOSIT", amount="1.001")
        assert response.status_code == 422

    async def test_description_required(self, authenticated_client, joint_account):
        response = await authenticated_client.post(
            f"/accounts/{joint_account['id']}/transactions",
            json={"type": "DEPOSIT", "amount": 10},
        )
        assert response.status_code == 422

    async def test_unknown_type_rejected(self, joint_account, transact):
        response = await transact(joint_account["id"], type="TRANSFER_IN", amount=10)
        assert response.status_code == 422


class TestWithdrawal:
    """Tests for WITHDRAWAL transactions."""

    async def test_rent_withdrawal(self, authenticated_client, joint_account, transact):
        """€1000 balance, €250 rent: balanceAfter is €750."""
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount=1000)

        response = await transact(
            account_id, type="WITHDRAWAL", amount=250, description="Rent"
        )
        assert response.status_code == 201
        txn = response.json()["data"]
        assert txn["type"] == "WITHDRAWAL"
        assert txn["amount"] == 250
        assert txn["balanceAfter"] == 750
        assert txn["description"] == "Rent"

        assert await _balance_cents(authenticated_client, account_id) == 75000

        account = await authenticated_client.get(f"/accounts/{account_id}")
        assert account.json()["data"]["balance"] == 750
        assert account.json()["data"]["balanceCents"] == txn["balanceAfterCents"]

    async def test_withdraw_exact_balance(self, authenticated_client, joint_account, transact):
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount="42.42")
        response = await transact(account_id, type="WITHDRAWAL", amount="42.42")
        assert response.status_code == 201
        assert response.json()["data"]["balanceAfterCents"] == 0
        assert await _balance_cents(authenticated_client, account_id) == 0

    async def test_insufficient_funds(
        self, authenticated_client, joint_account, transact, session_factory
    ):
        """Withdrawing €1 from €0 fails and writes nothing."""
        account_id = joint_account["id"]
        response = await transact(account_id, type="WITHDRAWAL", amount=1)
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Insufficient funds"
        assert body["errorType"] == "insufficient_funds"
        assert body["requestedCents"] == 100
        assert body["availableCents"] == 0

        assert await _balance_cents(authenticated_client, account_id) == 0
        assert await _transaction_count(session_factory, account_id) == 0

    async def test_overdraft_leaves_balance_untouched(
        self, authenticated_client, joint_account, transact, session_factory
    ):
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount=50)
        response = await transact(account_id, type="WITHDRAWAL", amount="50.01")
        assert response.status_code == 400
        assert response.json()["availableCents"] == 5000

        assert await _balance_cents(authenticated_client, account_id) == 5000
        assert await _transaction_count(session_factory, account_id) == 1


class TestOwnership:
    """Transactions are restricted to owners of the account."""

    async def test_co_owners_share_balance(
        self, client, authenticated_client, joint_account, second_user, transact
    ):
        account_id = joint_account["id"]
        await authenticated_client.post(
            f"/accounts/{account_id}/invite", json={"userId": second_user["id"]}
        )

        await transact(account_id, type="DEPOSIT", amount=500)
        response = await transact(
            account_id,
            headers=second_user["headers"],
            type="WITHDRAWAL",
            amount=120,
            description="Groceries",
        )
        assert response.status_code == 201
        txn = response.json()["data"]
        assert txn["processedBy"] == second_user["id"]
        assert txn["balanceAfter"] == 380

        assert await _balance_cents(client, account_id, second_user["headers"]) == 38000

    async def test_non_owner_cannot_transact(
        self, authenticated_client, joint_account, third_user, transact, session_factory
    ):
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount=100)

        for txn_type in ("DEPOSIT", "WITHDRAWAL"):
            response = await transact(
                account_id, headers=third_user["headers"], type=txn_type, amount=10
            )
            assert response.status_code == 403
            assert response.json()["errorType"] == "unauthorized"

        assert await _balance_cents(authenticated_client, account_id) == 10000
        assert await _transaction_count(session_factory, account_id) == 1

    async def test_unknown_account_is_403(self, authenticated_client, transact):
        """An account id the caller does not own looks the same whether or not it exists."""
        response = await transact(str(uuid.uuid4()), type="DEPOSIT", amount=10)
        assert response.status_code == 403
        assert response.json()["errorType"] == "unauthorized"

    async def test_ownership_checked_before_funds(self, joint_account, third_user, transact):
        """An outsider learns nothing about the balance: 403, not 400."""
        response = await transact(
            joint_account["id"], headers=third_user["headers"], type="WITHDRAWAL", amount=10**6
        )
        assert response.status_code == 403


class TestListTransactions:
    """Tests for GET /accounts/{id}/transactions[/{txn_id}]."""

    async def test_list_newest_first(self, authenticated_client, joint_account, transact):
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount=100, description="first")
        await transact(account_id, type="WITHDRAWAL", amount=10, description="second")
        await transact(account_id, type="DEPOSIT", amount=5, description="third")

        response = await authenticated_client.get(f"/accounts/{account_id}/transactions")
        assert response.status_code == 200
        data = response.json()["data"]
        assert [t["description"] for t in data] == ["third", "second", "first"]
        assert [t["balanceAfterCents"] for t in data] == [9500, 9000, 10000]

    async def test_filter_by_type(self, authenticated_client, joint_account, transact):
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount=100)
        await transact(account_id, type="WITHDRAWAL", amount=10)
        await transact(account_id, type="DEPOSIT", amount=5)

        response = await authenticated_client.get(
            f"/accounts/{account_id}/transactions", params={"type": "DEPOSIT"}
        )
        data = response.json()["data"]
        assert len(data) == 2
        assert all(t["type"] == "DEPOSIT" for t in data)

    async def test_pagination(self, authenticated_client, joint_account, transact):
        account_id = joint_account["id"]
        for i in range(5):
            await transact(account_id, type="DEPOSIT", amount=1, description=f"d{i}")

        page_1 = await authenticated_client.get(
            f"/accounts/{account_id}/transactions", params={"limit": 2, "offset": 0}
        )
        page_2 = await authenticated_client.get(
            f"/accounts/{account_id}/transactions", params={"limit": 2, "offset": 2}
        )
        assert [t["description"] for t in page_1.json()["data"]] == ["d4", "d3"]
        assert [t["description"] for t in page_2.json()["data"]] == ["d2", "d1"]

    async def test_limit_bounds(self, authenticated_client, joint_account):
        response = await authenticated_client.get(
            f"/accounts/{joint_account['id']}/transactions", params={"limit": 0}
        )
        assert response.status_code == 422

    async def test_get_single_transaction(self, authenticated_client, joint_account, transact):
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount=1000)
        created = await transact(account_id, type="WITHDRAWAL", amount=250, description="Rent")
        txn_id = created.json()["data"]["id"]

        response = await authenticated_client.get(
            f"/accounts/{account_id}/transactions/{txn_id}"
        )
        assert response.status_code == 200
        txn = response.json()["data"]
        assert txn["id"] == txn_id
        assert txn["balanceAfter"] == 750
        assert txn["reference"] == created.json()["data"]["reference"]

    async def test_unknown_transaction_is_404(self, authenticated_client, joint_account):
        response = await authenticated_client.get(
            f"/accounts/{joint_account['id']}/transactions/{uuid.uuid4()}"
        )
        assert response.status_code == 404
        assert response.json()["errorType"] == "not_found"

    async def test_transaction_of_other_account_is_404(
        self, authenticated_client, joint_account, transact
    ):
        other = await authenticated_client.post("/accounts", json={"name": "Other"})
        other_id = other.json()["data"]["id"]
        created = await transact(other_id, type="DEPOSIT", amount=10)
        txn_id = created.json()["data"]["id"]

        response = await authenticated_client.get(
            f"/accounts/{joint_account['id']}/transactions/{txn_id}"
        )
        assert response.status_code == 404

    async def test_non_owner_cannot_list(self, client, joint_account, third_user):
        response = await client.get(
            f"/accounts/{joint_account['id']}/transactions", headers=third_user["headers"]
        )
        assert response.status_code == 403


class TestConcurrency:
    """
    Concurrent requests against the same balance.

    Each request runs in its own session on its own connection, so these
    tests exercise the database-level atomic update rather than any
    in-process serialization.
    """

    async def test_concurrent_deposits_do_not_lose_updates(
        self, client, authenticated_client, joint_account, second_user, transact
    ):
        """Two owners deposit €100 at the same time on €0: the result is €200."""
        account_id = joint_account["id"]
        await authenticated_client.post(
            f"/accounts/{account_id}/invite", json={"userId": second_user["id"]}
        )

        responses = await asyncio.gather(
            transact(account_id, type="DEPOSIT", amount=100),
            transact(account_id, headers=second_user["headers"], type="DEPOSIT", amount=100),
        )
        assert [r.status_code for r in responses] == [201, 201]
        assert sorted(r.json()["data"]["balanceAfterCents"] for r in responses) == [10000, 20000]

        balance = await authenticated_client.get(f"/accounts/{account_id}/balance")
        data = balance.json()["data"]
        assert data["cachedBalanceCents"] == 20000
        assert data["match"] is True

    async def test_many_concurrent_deposits(self, authenticated_client, joint_account, transact):
        account_id = joint_account["id"]
        responses = await asyncio.gather(
            *[transact(account_id, type="DEPOSIT", amount=10) for _ in range(10)]
        )
        assert all(r.status_code == 201 for r in responses)
        assert await _balance_cents(authenticated_client, account_id) == 10000

    async def test_concurrent_withdrawals_cannot_overdraw(
        self, authenticated_client, joint_account, transact
    ):
        """Two €80 withdrawals race on €100: exactly one succeeds."""
        account_id = joint_account["id"]
        await transact(account_id, type="DEPOSIT", amount=100)

        responses = await asyncio.gather(
            transact(account_id, type="WITHDRAWAL", amount=80),
            transact(account_id, type="WITHDRAWAL", amount=80),
        )
        assert sorted(r.status_code for r in responses) == [201, 400]

        balance = await authenticated_client.get(f"/accounts/{account_id}/balance")
        data = balance.json()["data"]
        assert data["cachedBalanceCents"] == 2000
        assert data["match"] is True


class TestCommitBeforeResponse:
    """
    A success response is only sent once the write is committed.

    The app is driven at the ASGI level so the database can be inspected at
    the exact moment the response body leaves the server.
    """

    async def test_deposit_is_committed_when_response_is_sent(
        self, client, joint_account, owner, session_factory
    ):
        account_id = joint_account["id"]
        path = f"/accounts/{account_id}/transactions"
        body = json.dumps({"type": "DEPOSIT", "amount": 100, "description": "Paycheck"}).encode()
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "POST",
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [
                (b"host", b"test"),
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode()),
                (b"authorization", owner["headers"]["Authorization"].encode()),
            ],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
        }
        observed = {}
        request_sent = False
        response_complete = asyncio.Event()

        async def receive():
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            await response_complete.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            if message["type"] == "http.response.start":
                observed["status"] = message["status"]
            elif message["type"] == "http.response.body" and not message.get("more_body", False):
                async with session_factory() as session:
                    account = await session.get(JointAccount, uuid.UUID(account_id))
                    observed["balance_cents"] = account.balance_cents
                response_complete.set()

        await app(scope, receive, send)

        assert observed["status"] == 201
        assert observed["balance_cents"] == 10000

    async def test_read_after_write(self, authenticated_client, joint_account, transact):
        """A GET issued right after a 201 sees the new balance."""
        account_id = joint_account["id"]
        created = await transact(account_id, type="DEPOSIT", amount=42)
        assert created.status_code == 201

        response = await authenticated_client.get(f"/accounts/{account_id}")
        assert response.json()["data"]["balanceCents"] == 4200

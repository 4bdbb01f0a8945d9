#!/usr/bin/env python3
"""
Demo seed script — populates a running API with sample households.

!! NOT FOR PRODUCTION !!
This script creates test users with known passwords and fake transaction
data. It is intended ONLY for local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬──────────────────┐
    │ Email                        │ Password          │ Joint account    │
    ├──────────────────────────────┼───────────────────┼──────────────────┤
    │ anna.schmidt@example.com     │ AnnaDemo123!      │ Household (PRIM) │
    │ jonas.schmidt@example.com    │ JonasDemo123!     │ Household (CO)   │
    │ lea.wagner@example.com       │ LeaDemo123!       │ Flatshare (PRIM) │
    │ max.becker@example.com       │ MaxDemo123!       │ Flatshare (CO)   │
    │ sofia.klein@example.com      │ SofiaDemo123!     │ Flatshare (CO)   │
    └──────────────────────────────┴───────────────────┴──────────────────┘
"""

import argparse
import asyncio
import os
import random
import sys

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo users and households
# ---------------------------------------------------------------------------

USERS = {
    "anna": {
        "email": "anna.schmidt@example.com",
        "password": "AnnaDemo123!",
        "firstName": "Anna",
        "lastName": "Schmidt",
    },
    "jonas": {
        "email": "jonas.schmidt@example.com",
        "password": "JonasDemo123!",
        "firstName": "Jonas",
        "lastName": "Schmidt",
    },
    "lea": {
        "email": "lea.wagner@example.com",
        "password": "LeaDemo123!",
        "firstName": "Lea",
        "lastName": "Wagner",
    },
    "max": {
        "email": "max.becker@example.com",
        "password": "MaxDemo123!",
        "firstName": "Max",
        "lastName": "Becker",
    },
    "sofia": {
        "email": "sofia.klein@example.com",
        "password": "SofiaDemo123!",
        "firstName": "Sofia",
        "lastName": "Klein",
    },
}

HOUSEHOLDS = [
    {
        "name": "Schmidt Household",
        "accountType": "CHECKING",
        "primary": "anna",
        "co_owners": ["jonas"],
        "opening_deposit": "3500.00",
    },
    {
        "name": "Flatshare Kreuzberg",
        "accountType": "CHECKING",
        "primary": "lea",
        "co_owners": ["max", "sofia"],
        "opening_deposit": "1200.00",
    },
]

WITHDRAWAL_DESCRIPTIONS = [
    "Groceries", "Electricity bill", "Internet bill", "Pharmacy",
    "Household supplies", "Cash withdrawal", "Restaurant", "Cleaning service",
]

EXTERNAL_PAYEES = [
    ("Hausverwaltung Berlin GmbH", "DE89370400440532013000", "Rent"),
    ("Stadtwerke", "DE02120300000000202051", "Water and heating"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def format_eur(amount: float) -> str:
    return f"€{amount:,.2f}"


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(client: httpx.AsyncClient, user: dict) -> tuple[str, str]:
    """Register a user, return (user_id, token)."""
    resp = await client.post(f"{BASE_URL}/auth/register", json=user)
    resp.raise_for_status()
    data = resp.json()["data"]
    return data["user"]["id"], data["token"]


async def create_account(client: httpx.AsyncClient, token: str, household: dict) -> dict:
    resp = await client.post(
        f"{BASE_URL}/accounts",
        json={"name": household["name"], "accountType": household["accountType"]},
        headers=auth_header(token),
    )
    resp.raise_for_status()
    return resp.json()["data"]


async def invite(client: httpx.AsyncClient, token: str, account_id: str, user_id: str) -> None:
    resp = await client.post(
        f"{BASE_URL}/accounts/{account_id}/invite",
        json={"userId": user_id},
        headers=auth_header(token),
    )
    resp.raise_for_status()


async def transact(client: httpx.AsyncClient, token: str, account_id: str, body: dict) -> dict:
    resp = await client.post(
        f"{BASE_URL}/accounts/{account_id}/transactions",
        json=body,
        headers=auth_header(token),
    )
    return resp.json()


async def get_balance(client: httpx.AsyncClient, token: str, account_id: str) -> float:
    resp = await client.get(
        f"{BASE_URL}/accounts/{account_id}/balance",
        headers=auth_header(token),
    )
    resp.raise_for_status()
    return resp.json()["data"]["balance"]


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed_history(
    client: httpx.AsyncClient,
    tokens: list[str],
    account_id: str,
) -> int:
    """
    Post a month of shared spending, alternating between the owners.

    Returns the number of transactions that were accepted.
    """
    accepted = 0
    for token in tokens:
        result = await transact(client, token, account_id, {
            "type": "DEPOSIT",
            "amount": f"{random.randint(800, 2400)}.00",
            "description": "Salary share",
        })
        accepted += result.get("success", False)

    for _ in range(random.randint(6, 12)):
        result = await transact(client, random.choice(tokens), account_id, {
            "type": "WITHDRAWAL",
            "amount": f"{random.randint(5, 150)}.{random.randint(0, 99):02d}",
            "description": random.choice(WITHDRAWAL_DESCRIPTIONS),
        })
        if not result.get("success"):
            break
        accepted += 1

    name, iban, description = random.choice(EXTERNAL_PAYEES)
    result = await transact(client, tokens[0], account_id, {
        "type": "TRANSFER",
        "amount": f"{random.randint(300, 900)}.00",
        "description": description,
        "recipientIban": iban,
        "recipientName": name,
    })
    accepted += result.get("success", False)
    return accepted


async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn jointbank.main:app --reload\n")
            sys.exit(1)

        print("Registering users...")
        sessions: dict[str, tuple[str, str]] = {}
        for key, user in USERS.items():
            sessions[key] = await register(client, user)
            log(f"Login: {user['email']} / {user['password']}")

        accounts: list[dict] = []
        for household in HOUSEHOLDS:
            print(f"\nOpening {household['name']}...")
            primary_id, primary_token = sessions[household["primary"]]
            account = await create_account(client, primary_token, household)
            log(f"IBAN: {account['iban']}")

            for co_owner in household["co_owners"]:
                await invite(client, primary_token, account["id"], sessions[co_owner][0])
                log(f"Invited {USERS[co_owner]['firstName']}")

            await transact(client, primary_token, account["id"], {
                "type": "DEPOSIT",
                "amount": household["opening_deposit"],
                "description": "Opening deposit",
            })
            log(f"Opening deposit: {format_eur(float(household['opening_deposit']))}")

            tokens = [primary_token] + [sessions[c][1] for c in household["co_owners"]]
            count = await seed_history(client, tokens, account["id"])
            balance = await get_balance(client, primary_token, account["id"])
            log(f"{count} transactions seeded. Balance: {format_eur(balance)}")
            accounts.append({"account": account, "token": primary_token})

        # --- Internal transfer between the two households ---
        if len(accounts) >= 2:
            print("\nCreating an internal transfer...")
            source, destination = accounts[0], accounts[1]
            result = await transact(client, source["token"], source["account"]["id"], {
                "type": "TRANSFER",
                "amount": "75.00",
                "description": "Concert tickets",
                "recipientIban": destination["account"]["iban"],
                "recipientName": destination["account"]["name"],
            })
            if result.get("success"):
                log(f"{source['account']['name']} -> {destination['account']['name']}: €75.00")

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<30s} {'Password'}")
    print(f"  {'─' * 30} {'─' * 20}")
    for user in USERS.values():
        print(f"  {user['email']:<30s} {user['password']}")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "jointbank.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample users, joint accounts, and transactions for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())

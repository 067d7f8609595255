"""Seed script for development data.

Run with:  python -m pto_ledger.seed
Against another host:  PTO_LEDGER_URL=http://api:8000 python -m pto_ledger.seed
"""

from __future__ import annotations

import asyncio
import os
import sys

import httpx

BASE_URL = os.environ.get("PTO_LEDGER_URL", "http://localhost:8000")
ADMIN_USER_ID = "00000000-0000-0000-0000-000000000001"

HEADERS = {
    "Content-Type": "application/json",
    "X-User-Id": ADMIN_USER_ID,
    "X-Role": "admin",
}

EMPLOYEES = [
    {"full_name": "Alice Johnson", "hire_date": "2023-01-15"},
    {"full_name": "Bob Smith", "hire_date": "2023-06-01"},
    {"full_name": "Carol Williams", "hire_date": "2024-03-01"},
    {"full_name": "Dave Brown", "hire_date": "2024-09-15"},
]

# Opening balances: (full_name, balance_field, hours, note)
OPENING_BALANCES = [
    ("Alice Johnson", "vac_rollover", "16.00", "Opening balance carried from previous system"),
    ("Bob Smith", "vac_current", "8.00", "Opening balance carried from previous system"),
    ("Bob Smith", "sick_current", "4.00", "Opening balance carried from previous system"),
    ("Carol Williams", "sick_rollover", "12.50", "Opening balance carried from previous system"),
]

# Usage: (full_name, balance_field, hours)
USAGE = [
    ("Bob Smith", "vac_current", "2.00"),
]


async def _safe_post(client: httpx.AsyncClient, url: str, json: dict | None, label: str) -> dict | None:
    """POST, printing the outcome; domain conflicts are reported, not fatal."""
    resp = await client.post(url, json=json, headers=HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} ({resp.json().get('detail')})")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_employees(client: httpx.AsyncClient) -> dict[str, str]:
    """Register demo employees that are not on the roster yet; return a name->id mapping."""
    print("\n--- Seeding employees ---")
    resp = await client.get(f"{BASE_URL}/employees", headers=HEADERS)
    resp.raise_for_status()
    employee_ids = {item["full_name"]: item["id"] for item in resp.json()["items"]}

    for emp in EMPLOYEES:
        if emp["full_name"] in employee_ids:
            print(f"  [SKIP] {emp['full_name']} (already registered)")
            continue
        result = await _safe_post(client, f"{BASE_URL}/employees", emp, emp["full_name"])
        if result:
            employee_ids[emp["full_name"]] = result["id"]
    return employee_ids


async def seed_balances(client: httpx.AsyncClient, employee_ids: dict[str, str]) -> None:
    """Apply opening balances, skipping buckets that already hold hours."""
    print("\n--- Seeding opening balances ---")
    for name, field, hours, note in OPENING_BALANCES:
        employee_id = employee_ids.get(name)
        if not employee_id:
            print(f"  [SKIP] {name} not registered")
            continue
        resp = await client.get(f"{BASE_URL}/employees/{employee_id}/balance", headers=HEADERS)
        if resp.status_code == 200 and float(resp.json()[field]) > 0:
            print(f"  [SKIP] {name} {field} (already {resp.json()[field]}h)")
            continue
        await _safe_post(
            client,
            f"{BASE_URL}/employees/{employee_id}/adjustments",
            {"balance_field": field, "hours": hours, "note": note},
            f"{name} {field} +{hours}h",
        )


async def seed_usage(client: httpx.AsyncClient, employee_ids: dict[str, str]) -> None:
    """Record some PTO taken."""
    print("\n--- Seeding usage ---")
    for name, field, hours in USAGE:
        employee_id = employee_ids.get(name)
        if not employee_id:
            continue
        await _safe_post(
            client,
            f"{BASE_URL}/employees/{employee_id}/usage",
            {"balance_field": field, "hours": hours},
            f"{name} used {hours}h of {field}",
        )


async def main() -> None:
    print("=" * 60)
    print("  PTO Ledger: development seed script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            sys.exit(1)

        employee_ids = await seed_employees(client)
        await seed_balances(client, employee_ids)
        await seed_usage(client, employee_ids)

        print("\n--- Running monthly accrual ---")
        result = await _safe_post(client, f"{BASE_URL}/accruals/monthly", None, "Monthly accrual")
        if result:
            print(f"  {result['message']}")

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())

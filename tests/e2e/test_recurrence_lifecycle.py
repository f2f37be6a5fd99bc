"""
E2E test of a recurring obligation through its whole lifecycle.

Scenario:
- Monthly rent of 500.00 on the 15th, starting 2025-01-15, three months ahead
- Amount raised to 600.00 from 2025-02-15
- A wider projection adds April at the new amount; generated months keep 500.00
- Settlement details are pushed to every instance
- The raise is reverted and the recurrence ended
"""

from decimal import Decimal
from fastapi.testclient import TestClient

OWNER = {"X-Owner-Id": "owner-1"}
AS_OF = {"as_of": "2025-01-15"}


def test_monthly_rent_lifecycle(client: TestClient, rent_definition: dict):
    # 1. Create: January to March at 500
    created = client.post("/v1/recurrences", json=rent_definition, params=AS_OF, headers=OWNER)
    assert created.status_code == 201
    recurrence = created.json()["recurrence"]
    recurrence_id = recurrence["id"]
    assert created.json()["generated_count"] == 3

    # 2. Amend: 600 from February on
    amended = client.post(
        f"/v1/recurrences/{recurrence_id}/versions",
        json={"new_amount": "600.00", "effective_from": "2025-02-15", "reason": "Annual indexation"},
        headers=OWNER,
    )
    assert amended.status_code == 201
    v2 = amended.json()

    versions = client.get(f"/v1/recurrences/{recurrence_id}/versions", headers=OWNER).json()
    assert [v["version_number"] for v in versions] == [1, 2]
    assert versions[0]["effective_to"] == "2025-02-15"
    assert versions[0]["is_active"] is False
    assert versions[1]["effective_to"] is None

    # 3. Project four months: only April is new, at 600
    projected = client.post(
        f"/v1/recurrences/{recurrence_id}/project", json={"months_ahead": 4}, params=AS_OF, headers=OWNER
    )
    assert projected.json()["generated_count"] == 1

    transactions = client.get("/v1/transactions", params={"recurrence_id": recurrence_id}, headers=OWNER).json()
    amounts = {t["due_date"]: Decimal(t["amount"]) for t in transactions}
    assert amounts == {
        "2025-01-15": Decimal("500"),
        "2025-02-15": Decimal("500"),
        "2025-03-15": Decimal("500"),
        "2025-04-15": Decimal("600"),
    }
    april = next(t for t in transactions if t["due_date"] == "2025-04-15")
    assert april["recurrence_version_id"] == v2["id"]

    # 4. Propagate settlement details to every instance
    propagated = client.post(
        f"/v1/recurrences/{recurrence_id}/propagate",
        json={"fields": {"charge_account_id": "acc-42", "supplier_bank_account": "ES91 2100 0418"}},
        headers=OWNER,
    )
    assert propagated.json()["updated_count"] == 4
    transactions = client.get("/v1/transactions", params={"recurrence_id": recurrence_id}, headers=OWNER).json()
    assert all(t["charge_account_id"] == "acc-42" for t in transactions)

    # 5. Revert the raise
    reverted = client.delete(f"/v1/versions/{v2['id']}", headers=OWNER)
    assert reverted.status_code == 200
    current = client.get(f"/v1/recurrences/{recurrence_id}", headers=OWNER).json()
    assert Decimal(current["base_amount"]) == Decimal("500")
    assert current["current_version_id"] == recurrence["current_version_id"]

    # 6. End it: future pending instances are removed, history stays
    ended = client.patch(
        f"/v1/recurrences/{recurrence_id}", json={"status": "ENDED"}, params={"as_of": "2025-03-01"}, headers=OWNER
    )
    assert ended.status_code == 200
    assert ended.json()["deleted_count"] == 2
    remaining = client.get("/v1/transactions", params={"recurrence_id": recurrence_id}, headers=OWNER).json()
    assert [t["due_date"] for t in remaining] == ["2025-01-15", "2025-02-15"]

    # Ended recurrences no longer project
    idle = client.post(f"/v1/recurrences/{recurrence_id}/project", json={}, params=AS_OF, headers=OWNER)
    assert idle.json()["generated_count"] == 0

    # Every mutation left an audit entry
    actions = [e["action"] for e in client.get("/v1/audit-logs", headers=OWNER).json()]
    for action in ("CREATE", "AMEND", "PROPAGATE", "REVERT", "UPDATE"):
        assert action in actions

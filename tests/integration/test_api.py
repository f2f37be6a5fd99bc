"""Integration tests for API endpoints"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from treasury_gateway.domain.models import TransactionInstance, TransactionStatus, TransactionType
from treasury_gateway.infrastructure.database.models import AuditLogRecord, TransactionRecord
from treasury_gateway.infrastructure.database.repositories import TransactionRepository

OWNER = {"X-Owner-Id": "owner-1"}
OTHER_OWNER = {"X-Owner-Id": "owner-2"}
AS_OF = {"as_of": "2025-01-15"}


@pytest.fixture
def recurrence(client: TestClient, rent_definition: dict) -> dict:
    """Monthly rent created on 2025-01-15 with three projected instances"""
    response = client.post("/v1/recurrences", json=rent_definition, params=AS_OF, headers=OWNER)
    assert response.status_code == 201
    return response.json()["recurrence"]


def list_transactions(client: TestClient, recurrence_id: str) -> list:
    response = client.get("/v1/transactions", params={"recurrence_id": recurrence_id}, headers=OWNER)
    assert response.status_code == 200
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_request_id_is_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "treasury_propagated_transactions_total" in response.text


def test_missing_owner_header(client: TestClient):
    response = client.get("/v1/recurrences")
    assert response.status_code == 401


def test_create_recurrence_projects_window(client: TestClient, rent_definition: dict):
    response = client.post("/v1/recurrences", json=rent_definition, params=AS_OF, headers=OWNER)

    assert response.status_code == 201
    data = response.json()
    assert data["generated_count"] == 3
    assert data["recurrence"]["last_generated_date"] == "2025-03-15"
    assert data["recurrence"]["next_occurrence_date"] == "2025-04-15"
    assert data["recurrence"]["current_version_id"] is not None

    transactions = list_transactions(client, data["recurrence"]["id"])
    assert [t["due_date"] for t in transactions] == ["2025-01-15", "2025-02-15", "2025-03-15"]
    assert all(Decimal(t["amount"]) == Decimal("500") for t in transactions)
    assert all(t["payment_method"] == "TRANSFER" for t in transactions)


def test_create_recurrence_invalid_rule(client: TestClient, rent_definition: dict):
    """Monthly without a day of month"""
    rent_definition.pop("day_of_month")
    response = client.post("/v1/recurrences", json=rent_definition, params=AS_OF, headers=OWNER)

    assert response.status_code == 422
    assert "day_of_month" in response.json()["detail"]


def test_projection_is_idempotent(client: TestClient, recurrence: dict):
    url = f"/v1/recurrences/{recurrence['id']}/project"

    again = client.post(url, json={}, params=AS_OF, headers=OWNER)
    assert again.status_code == 200
    assert again.json()["generated_count"] == 0

    wider = client.post(url, json={"months_ahead": 4}, params=AS_OF, headers=OWNER)
    assert wider.json()["generated_count"] == 1
    assert wider.json()["last_generated_date"] == "2025-04-15"
    assert len(list_transactions(client, recurrence["id"])) == 4


def test_recurrence_ownership(client: TestClient, recurrence: dict):
    assert client.get(f"/v1/recurrences/{recurrence['id']}", headers=OTHER_OWNER).status_code == 403
    assert client.get("/v1/recurrences/not-a-uuid", headers=OWNER).status_code == 404
    assert client.get("/v1/recurrences", headers=OTHER_OWNER).json() == []


def test_pause_and_resume(client: TestClient, recurrence: dict):
    url = f"/v1/recurrences/{recurrence['id']}"

    paused = client.patch(url, json={"status": "PAUSED"}, params=AS_OF, headers=OWNER)
    assert paused.status_code == 200
    assert paused.json()["deleted_count"] == 3
    assert list_transactions(client, recurrence["id"]) == []

    resumed = client.patch(url, json={"status": "ACTIVE"}, params=AS_OF, headers=OWNER)
    assert resumed.json()["generated_count"] == 3
    assert len(list_transactions(client, recurrence["id"])) == 3


def test_resume_after_gap_skips_paused_months(client: TestClient, recurrence: dict):
    """Occurrences that fell inside the pause are not backfilled"""
    url = f"/v1/recurrences/{recurrence['id']}"
    client.patch(url, json={"status": "PAUSED"}, params=AS_OF, headers=OWNER)

    resumed = client.patch(url, json={"status": "ACTIVE"}, params={"as_of": "2025-06-01"}, headers=OWNER)

    assert resumed.status_code == 200
    data = resumed.json()
    assert data["generated_count"] == 3
    assert data["recurrence"]["last_generated_date"] == "2025-08-15"
    assert data["recurrence"]["next_occurrence_date"] == "2025-09-15"
    due_dates = [t["due_date"] for t in list_transactions(client, recurrence["id"])]
    assert due_dates == ["2025-06-15", "2025-07-15", "2025-08-15"]


def test_resume_keeps_paid_instance_date_unique(client: TestClient, recurrence: dict, db: Session):
    db.query(TransactionRecord).filter(TransactionRecord.due_date == date(2025, 2, 15)).update(
        {"status": TransactionStatus.PAID.value}
    )
    db.commit()
    url = f"/v1/recurrences/{recurrence['id']}"

    paused = client.patch(url, json={"status": "PAUSED"}, params=AS_OF, headers=OWNER)
    assert paused.json()["deleted_count"] == 2

    resumed = client.patch(url, json={"status": "ACTIVE"}, params=AS_OF, headers=OWNER)
    assert resumed.json()["generated_count"] == 2

    transactions = list_transactions(client, recurrence["id"])
    assert [t["due_date"] for t in transactions] == ["2025-01-15", "2025-02-15", "2025-03-15"]
    assert [t["status"] for t in transactions] == ["PENDING", "PAID", "PENDING"]


def test_schedule_change_keeps_overridden_instance_date_unique(
    client: TestClient, recurrence: dict, db: Session
):
    db.query(TransactionRecord).filter(TransactionRecord.due_date == date(2025, 3, 15)).update(
        {"overridden_from_recurrence": True, "amount": Decimal("450.00")}
    )
    db.commit()

    response = client.patch(
        f"/v1/recurrences/{recurrence['id']}", json={"generate_months_ahead": 4}, params=AS_OF, headers=OWNER
    )

    assert response.status_code == 200
    assert response.json()["deleted_count"] == 2
    assert response.json()["generated_count"] == 3
    transactions = list_transactions(client, recurrence["id"])
    due_dates = [t["due_date"] for t in transactions]
    assert due_dates == ["2025-01-15", "2025-02-15", "2025-03-15", "2025-04-15"]
    assert len(set(due_dates)) == len(due_dates)
    assert Decimal(transactions[2]["amount"]) == Decimal("450")


def test_end_date_moved_earlier_drops_later_pending(client: TestClient, recurrence: dict):
    """Pending instances past the new end go, even when already due"""
    response = client.patch(
        f"/v1/recurrences/{recurrence['id']}",
        json={"end_date": "2025-01-31"},
        params={"as_of": "2025-03-01"},
        headers=OWNER,
    )

    assert response.status_code == 200
    assert response.json()["deleted_count"] == 2
    assert response.json()["generated_count"] == 0
    assert [t["due_date"] for t in list_transactions(client, recurrence["id"])] == ["2025-01-15"]


def test_update_rejects_null_for_required_field(client: TestClient, recurrence: dict):
    url = f"/v1/recurrences/{recurrence['id']}"

    assert client.patch(url, json={"name": None}, params=AS_OF, headers=OWNER).status_code == 422
    assert client.patch(url, json={"frequency": None}, params=AS_OF, headers=OWNER).status_code == 422

    cleared = client.patch(url, json={"end_date": None, "notes": "rent"}, params=AS_OF, headers=OWNER)
    assert cleared.status_code == 200
    assert cleared.json()["recurrence"]["name"] == "Office rent"


def test_delete_recurrence_with_transactions(client: TestClient, recurrence: dict):
    response = client.delete(f"/v1/recurrences/{recurrence['id']}", headers=OWNER)
    assert response.status_code == 409


def test_delete_recurrence_without_transactions(client: TestClient, rent_definition: dict):
    rent_definition["start_date"] = "2030-01-15"
    created = client.post("/v1/recurrences", json=rent_definition, params=AS_OF, headers=OWNER).json()
    assert created["generated_count"] == 0

    response = client.delete(f"/v1/recurrences/{created['recurrence']['id']}", headers=OWNER)
    assert response.status_code == 204
    assert client.get(f"/v1/recurrences/{created['recurrence']['id']}", headers=OWNER).status_code == 404


def test_amend_and_revert(client: TestClient, recurrence: dict):
    versions_url = f"/v1/recurrences/{recurrence['id']}/versions"

    amended = client.post(
        versions_url, json={"new_amount": "600.00", "effective_from": "2025-02-15"}, headers=OWNER
    )
    assert amended.status_code == 201
    assert amended.json()["version_number"] == 2

    reverted = client.delete(f"/v1/versions/{amended.json()['id']}", headers=OWNER)
    assert reverted.status_code == 200
    assert reverted.json()["version_number"] == 1
    assert reverted.json()["is_active"] is True

    current = client.get(f"/v1/recurrences/{recurrence['id']}", headers=OWNER).json()
    assert Decimal(current["base_amount"]) == Decimal("500")
    assert current["current_version_id"] == recurrence["current_version_id"]
    assert len(client.get(versions_url, headers=OWNER).json()) == 1


def test_amend_leaves_generated_instances_by_default(client: TestClient, recurrence: dict):
    client.post(
        f"/v1/recurrences/{recurrence['id']}/versions",
        json={"new_amount": "600.00", "effective_from": "2025-02-15"},
        headers=OWNER,
    )

    transactions = list_transactions(client, recurrence["id"])
    assert all(Decimal(t["amount"]) == Decimal("500") for t in transactions)
    assert all(t["recurrence_version_id"] == recurrence["current_version_id"] for t in transactions)


def test_amend_reprices_future_pending_instances(client: TestClient, recurrence: dict, db: Session):
    db.query(TransactionRecord).filter(TransactionRecord.due_date == date(2025, 3, 15)).update(
        {"status": TransactionStatus.PAID.value}
    )
    db.commit()

    amended = client.post(
        f"/v1/recurrences/{recurrence['id']}/versions",
        json={"new_amount": "600.00", "effective_from": "2025-02-15", "update_future_transactions": True},
        headers=OWNER,
    )

    assert amended.status_code == 201
    new_version_id = amended.json()["id"]
    jan, feb, mar = list_transactions(client, recurrence["id"])
    assert (Decimal(jan["amount"]), jan["recurrence_version_id"]) == (
        Decimal("500"), recurrence["current_version_id"]
    )
    assert (Decimal(feb["amount"]), feb["recurrence_version_id"]) == (Decimal("600"), new_version_id)
    # Paid instances keep what was paid
    assert Decimal(mar["amount"]) == Decimal("500")

    entry = db.query(AuditLogRecord).filter(AuditLogRecord.action == "AMEND").one()
    assert entry.new_values["updated_transactions"] == 1


def test_revert_older_version_writes_nothing(client: TestClient, recurrence: dict):
    versions_url = f"/v1/recurrences/{recurrence['id']}/versions"
    v2 = client.post(versions_url, json={"new_amount": "600.00", "effective_from": "2025-02-15"}, headers=OWNER).json()
    client.post(versions_url, json={"new_amount": "650.00", "effective_from": "2025-06-15"}, headers=OWNER)
    before = client.get(versions_url, headers=OWNER).json()

    response = client.delete(f"/v1/versions/{v2['id']}", headers=OWNER)

    assert response.status_code == 409
    assert client.get(versions_url, headers=OWNER).json() == before
    current = client.get(f"/v1/recurrences/{recurrence['id']}", headers=OWNER).json()
    assert Decimal(current["base_amount"]) == Decimal("650")


def test_revert_initial_version(client: TestClient, recurrence: dict):
    response = client.delete(f"/v1/versions/{recurrence['current_version_id']}", headers=OWNER)
    assert response.status_code == 422


def test_amendment_overlapping_active_version(client: TestClient, recurrence: dict):
    response = client.post(
        f"/v1/recurrences/{recurrence['id']}/versions",
        json={"new_amount": "600.00", "effective_from": "2025-01-01"},
        headers=OWNER,
    )
    assert response.status_code == 422


def test_propagate_fields(client: TestClient, recurrence: dict):
    response = client.post(
        f"/v1/recurrences/{recurrence['id']}/propagate",
        json={"fields": {"payment_method": "CARD", "amount": "1.00"}},
        headers=OWNER,
    )

    assert response.status_code == 200
    assert response.json()["updated_count"] == 3
    transactions = list_transactions(client, recurrence["id"])
    assert all(t["payment_method"] == "CARD" for t in transactions)
    assert all(Decimal(t["amount"]) == Decimal("500") for t in transactions)
    current = client.get(f"/v1/recurrences/{recurrence['id']}", headers=OWNER).json()
    assert current["payment_method"] == "CARD"


def test_propagate_without_valid_fields_writes_nothing(client: TestClient, recurrence: dict, db: Session):
    audit_before = db.query(AuditLogRecord).count()

    response = client.post(
        f"/v1/recurrences/{recurrence['id']}/propagate",
        json={"fields": {"amount": "1.00", "due_date": "2025-01-01"}},
        headers=OWNER,
    )

    assert response.status_code == 400
    assert all(t["payment_method"] == "TRANSFER" for t in list_transactions(client, recurrence["id"]))
    assert db.query(AuditLogRecord).count() == audit_before


def test_propagate_foreign_recurrence(client: TestClient, recurrence: dict):
    response = client.post(
        f"/v1/recurrences/{recurrence['id']}/propagate",
        json={"fields": {"payment_method": "CARD"}},
        headers=OTHER_OWNER,
    )
    assert response.status_code == 403


def test_dedupe_transactions(client: TestClient, db: Session):
    TransactionRepository(db).add_many(
        TransactionInstance(
            owner_id="owner-1",
            company_id="company-1",
            type=TransactionType.EXPENSE,
            amount=Decimal("120.00"),
            due_date=date(2025, 3, 1),
            description="Software licence",
            created_at=datetime(2025, 1, day),
        )
        for day in (3, 1, 2)
    )
    db.commit()

    response = client.post("/v1/maintenance/dedupe", json={"entity": "transaction"}, headers=OWNER)

    assert response.status_code == 200
    report = response.json()
    assert report["analyzed"] == 3
    assert report["duplicate_groups"] == 1
    assert report["deleted_count"] == 2
    assert report["errors"] == []

    survivors = db.query(TransactionRecord).all()
    assert len(survivors) == 1
    assert survivors[0].created_at.replace(tzinfo=None) == datetime(2025, 1, 1)


def test_dedupe_recurrences_detaches_transactions(client: TestClient, recurrence: dict, rent_definition: dict, db: Session):
    rent_definition["start_date"] = "2025-01-16"
    duplicate = client.post("/v1/recurrences", json=rent_definition, params=AS_OF, headers=OWNER).json()

    response = client.post("/v1/maintenance/dedupe", json={"entity": "recurrence"}, headers=OWNER)

    assert response.json()["deleted_count"] == 1
    assert client.get(f"/v1/recurrences/{duplicate['recurrence']['id']}", headers=OWNER).status_code == 404
    assert client.get(f"/v1/recurrences/{recurrence['id']}", headers=OWNER).status_code == 200
    # Transactions of the removed duplicate survive, unlinked
    assert db.query(TransactionRecord).filter(TransactionRecord.recurrence_id.is_(None)).count() == 2


def test_loan_lifecycle(client: TestClient):
    response = client.post(
        "/v1/loans",
        json={
            "company_id": "company-1",
            "lender_name": "First Bank",
            "alias": "Van loan",
            "payment_day": 31,
            "first_pending_date": "2025-01-31",
            "remaining_installments": 12,
            "original_principal": "10000",
            "interest_rate": "5",
        },
        headers=OWNER,
    )
    assert response.status_code == 201
    data = response.json()
    loan_id = data["loan"]["id"]
    assert data["generated_count"] == 12
    assert Decimal(data["loan"]["monthly_payment"]) == Decimal("856.07")
    assert data["loan"]["end_date"] == "2025-12-31"

    installments = client.get("/v1/transactions", params={"loan_id": loan_id}, headers=OWNER).json()
    assert [t["loan_installment_number"] for t in installments] == list(range(1, 13))
    assert installments[1]["due_date"] == "2025-02-28"

    summary = client.get(f"/v1/loans/{loan_id}/summary", headers=OWNER).json()
    assert Decimal(summary["total_remaining"]) == Decimal("10272.84")
    assert summary["remaining_count"] == 12
    assert summary["progress_percent"] == 0
    assert summary["next_payment_date"] == "2025-01-31"

    assert client.delete(f"/v1/loans/{loan_id}", headers=OWNER).status_code == 204
    assert client.get("/v1/transactions", params={"loan_id": loan_id}, headers=OWNER).json() == []


def test_delete_loan_with_paid_installment(client: TestClient, db: Session):
    loan = client.post(
        "/v1/loans",
        json={
            "company_id": "company-1",
            "lender_name": "First Bank",
            "payment_day": 5,
            "first_pending_date": "2025-01-05",
            "remaining_installments": 3,
            "monthly_payment": "250.00",
        },
        headers=OWNER,
    ).json()["loan"]
    db.query(TransactionRecord).filter(TransactionRecord.loan_installment_number == 1).update(
        {"status": TransactionStatus.PAID.value}
    )
    db.commit()

    response = client.delete(f"/v1/loans/{loan['id']}", headers=OWNER)
    assert response.status_code == 409


def test_audit_trail(client: TestClient, recurrence: dict):
    client.post(
        f"/v1/recurrences/{recurrence['id']}/versions",
        json={"new_amount": "600.00", "effective_from": "2025-02-15", "reason": "Indexation"},
        headers=OWNER,
    )

    entries = client.get("/v1/audit-logs", headers=OWNER).json()
    actions = {e["action"] for e in entries}
    assert {"CREATE", "AMEND"} <= actions
    amend_entry = next(e for e in entries if e["action"] == "AMEND")
    assert amend_entry["new_values"]["change_reason"] == "Indexation"
    assert client.get("/v1/audit-logs", headers=OTHER_OWNER).json() == []


def test_regenerate_all(client: TestClient, recurrence: dict, rent_definition: dict):
    rent_definition.update(name="Cleaning", frequency="WEEKLY", day_of_week=1)
    rent_definition.pop("day_of_month")
    client.post("/v1/recurrences", json=rent_definition, params=AS_OF, headers=OWNER)

    response = client.post("/v1/recurrences/regenerate", json={"months_ahead": 4}, params=AS_OF, headers=OWNER)

    assert response.status_code == 200
    report = response.json()
    assert report["processed"] == 2
    assert report["errors"] == []
    # Rent adds April; the weekly job adds the Mondays from 2025-04-21 to 2025-05-12
    assert report["generated"] == 1 + 4

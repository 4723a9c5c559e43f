from __future__ import annotations

from typing import Any

API = "/api/v1"


def assert_error(response, status_code: int, message_contains: str | None = None) -> None:
    assert response.status_code == status_code
    payload = response.json()
    assert "detail" in payload
    if message_contains is not None:
        assert message_contains in payload["detail"]


def create_contract(
    client,
    initiator_id: str,
    number: str = "C-2024-001",
    amount: float = 50000.0,
    **overrides: Any,
):
    payload: dict[str, Any] = {
        "number": number,
        "counterparty": "Acme Supplies",
        "amount": amount,
        "start_date": "2024-01-01",
        "end_date": "2024-12-31",
        "contract_type": "Supply",
        "initiator_id": initiator_id,
    }
    payload.update(overrides)
    return client.post(f"{API}/contracts", json=payload)


def create_workflow(
    client,
    name: str = "Workflow",
    steps: list[dict[str, Any]] | None = None,
    status: str = "ACTIVE",
    **overrides: Any,
):
    payload: dict[str, Any] = {
        "name": name,
        "status": status,
        "steps": steps or [],
    }
    payload.update(overrides)
    return client.post(f"{API}/workflows", json=payload)


def start_approval(client, contract_id: int, user_id: str, workflow_id: int | None = None):
    return client.post(
        f"{API}/contracts/{contract_id}/start-approval?user_id={user_id}",
        json={"workflow_id": workflow_id},
    )


def decide(
    client,
    approval_id: int,
    user_id: str,
    status: str = "APPROVED",
    comment: str | None = None,
):
    return client.post(
        f"{API}/approvals/{approval_id}/decision?user_id={user_id}",
        json={"status": status, "comment": comment},
    )


def approval_for(payload: dict[str, Any], approver_id: str) -> dict[str, Any]:
    """Pick the approval of one approver from a start-approval or detail payload."""
    return next(a for a in payload["approvals"] if a["approver_id"] == approver_id)


def get_contract(client, contract_id: int) -> dict[str, Any]:
    response = client.get(f"{API}/contracts/{contract_id}")
    assert response.status_code == 200
    return response.json()


def notifications_for(client, user_id: str) -> list[dict[str, Any]]:
    response = client.get(f"{API}/notifications?user_id={user_id}")
    assert response.status_code == 200
    return response.json()

"""Tests for contract records: creation, listing, editing and manual status changes."""

from contractflow.models import Contract, ContractStatus
from tests.helpers import (
    API,
    approval_for,
    assert_error,
    create_contract,
    decide,
    get_contract,
    notifications_for,
)


class TestCreateContract:
    def test_create_defaults_to_draft(self, client, users):
        response = create_contract(client, users["initiator"].id)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "DRAFT"
        assert data["approval_round"] == 0
        assert data["initiator"]["id"] == "initiator-1"
        assert data["history"][0]["action"] == "CREATED"

    def test_unknown_initiator(self, client, users):
        assert_error(create_contract(client, "ghost"), 404, "ghost")

    def test_end_date_before_start_is_invalid(self, client, users):
        response = create_contract(
            client,
            users["initiator"].id,
            start_date="2024-06-01",
            end_date="2024-05-01",
        )
        assert response.status_code == 422

    def test_amount_must_be_positive(self, client, users):
        response = create_contract(client, users["initiator"].id, amount=0)
        assert response.status_code == 422

    def test_duplicate_number_conflicts(self, client, contract, users):
        response = create_contract(client, users["initiator"].id, number=contract["number"])
        assert_error(response, 409, "already exists")


class TestListContracts:
    def _seed(self, client, users):
        create_contract(client, users["initiator"].id, number="C-1", counterparty="Acme", amount=100)
        create_contract(client, users["initiator"].id, number="C-2", counterparty="Globex", amount=300)
        create_contract(client, users["initiator"].id, number="X-3", counterparty="Initech", amount=200)

    def test_pagination(self, client, users):
        self._seed(client, users)
        response = client.get(f"{API}/contracts?page=2&limit=2")
        assert response.status_code == 200
        data = response.json()
        assert data["pagination"] == {"total": 3, "page": 2, "limit": 2, "total_pages": 2}
        assert len(data["contracts"]) == 1

    def test_search_is_case_insensitive(self, client, users):
        self._seed(client, users)
        data = client.get(f"{API}/contracts?search=globex").json()
        assert [c["number"] for c in data["contracts"]] == ["C-2"]
        data = client.get(f"{API}/contracts?search=c-").json()
        assert data["pagination"]["total"] == 2

    def test_sort_by_amount(self, client, users):
        self._seed(client, users)
        data = client.get(f"{API}/contracts?sort_by=amount&sort_order=asc").json()
        assert [c["amount"] for c in data["contracts"]] == [100, 200, 300]

    def test_unknown_sort_column(self, client, users):
        assert_error(client.get(f"{API}/contracts?sort_by=password"), 400, "Cannot sort by")

    def test_filter_by_status(self, client, users, in_review):
        create_contract(client, users["initiator"].id, number="C-draft")
        data = client.get(f"{API}/contracts?status=IN_REVIEW").json()
        assert [c["id"] for c in data["contracts"]] == [in_review["contract_id"]]


class TestUpdateContract:
    def test_initiator_updates_draft(self, client, contract, users):
        response = client.patch(
            f"{API}/contracts/{contract['id']}?user_id={users['initiator'].id}",
            json={"amount": 75000, "description": "Revised terms"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["amount"] == 75000
        assert data["description"] == "Revised terms"
        entry = data["history"][0]
        assert entry["action"] == "CONTRACT_UPDATED"
        assert entry["details"]["changes"]["amount"] == 75000

    def test_only_initiator_may_edit(self, client, contract, users):
        response = client.patch(
            f"{API}/contracts/{contract['id']}?user_id={users['manager'].id}",
            json={"amount": 1},
        )
        assert_error(response, 403, "initiator")

    def test_locked_while_in_review(self, client, in_review, users):
        response = client.patch(
            f"{API}/contracts/{in_review['contract_id']}?user_id={users['initiator'].id}",
            json={"amount": 1},
        )
        assert_error(response, 409, "IN_REVIEW")

    def test_dates_checked_against_stored_values(self, client, contract, users):
        response = client.patch(
            f"{API}/contracts/{contract['id']}?user_id={users['initiator'].id}",
            json={"end_date": "2023-01-01"},
        )
        assert_error(response, 400, "end_date")

    def test_rejected_contract_is_editable(self, client, in_review, users):
        manager = approval_for(in_review, users["manager"].id)
        decide(client, manager["id"], users["manager"].id, "REJECTED", "Price too high")
        response = client.patch(
            f"{API}/contracts/{in_review['contract_id']}?user_id={users['initiator'].id}",
            json={"amount": 45000},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "REJECTED"


class TestStatusChanges:
    def _change(self, client, contract_id, status, user_id="initiator-1"):
        return client.post(
            f"{API}/contracts/{contract_id}/status?user_id={user_id}",
            json={"status": status},
        )

    def test_draft_can_be_archived(self, client, contract):
        response = self._change(client, contract["id"], "ARCHIVED")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ARCHIVED"
        assert data["history"][0]["details"] == {"from": "DRAFT", "to": "ARCHIVED"}

    def test_approval_states_cannot_be_set_manually(self, client, contract):
        assert_error(self._change(client, contract["id"], "APPROVED"), 409, "Cannot change status")
        assert_error(self._change(client, contract["id"], "IN_REVIEW"), 409)

    def test_signing_notifies_initiator(self, client, contract, users, db_session):
        db_contract = db_session.get(Contract, contract["id"])
        db_contract.status = ContractStatus.APPROVED
        db_session.commit()

        response = self._change(client, contract["id"], "SIGNED", users["office"].id)
        assert response.status_code == 200
        assert response.json()["status"] == "SIGNED"
        types = [n["type"] for n in notifications_for(client, users["initiator"].id)]
        assert "CONTRACT_SIGNED" in types

    def test_rejected_returns_to_draft(self, client, in_review, users):
        manager = approval_for(in_review, users["manager"].id)
        decide(client, manager["id"], users["manager"].id, "REJECTED")
        response = self._change(client, in_review["contract_id"], "DRAFT")
        assert response.status_code == 200
        assert get_contract(client, in_review["contract_id"])["status"] == "DRAFT"


class TestShipping:
    def _ship(self, client, contract_id, user_id="office-1", **fields):
        return client.put(
            f"{API}/contracts/{contract_id}/shipping?user_id={user_id}",
            json=fields,
        )

    def test_record_shipment(self, client, contract, users):
        response = self._ship(
            client,
            contract["id"],
            shipping_method="COURIER",
            shipping_status="SHIPPED",
            tracking_number="TRK-001",
            shipping_date="2024-02-01",
            shipping_address="1 Main Street",
        )
        assert response.status_code == 200
        data = response.json()
        assert data["shipping_method"] == "COURIER"
        assert data["shipping_status"] == "SHIPPED"
        assert data["tracking_number"] == "TRK-001"
        assert data["shipping_date"] == "2024-02-01"

        entry = data["history"][0]
        assert entry["action"] == "SHIPPING_UPDATED"
        assert entry["user_id"] == "office-1"
        assert entry["details"] == {
            "shipping_method": "COURIER",
            "shipping_status": "SHIPPED",
            "tracking_number": "TRK-001",
            "shipping_date": "2024-02-01",
            "delivery_date": None,
        }

    def test_update_replaces_all_fields(self, client, contract, users):
        self._ship(client, contract["id"], shipping_method="COURIER", tracking_number="TRK-001")
        data = self._ship(
            client, contract["id"], shipping_status="DELIVERED", delivery_date="2024-02-03"
        ).json()
        assert data["shipping_status"] == "DELIVERED"
        assert data["shipping_method"] is None
        assert data["tracking_number"] is None

    def test_delivery_before_shipping_is_invalid(self, client, contract, users):
        response = self._ship(
            client, contract["id"], shipping_date="2024-02-05", delivery_date="2024-02-01"
        )
        assert response.status_code == 422

    def test_unknown_status_value(self, client, contract, users):
        assert self._ship(client, contract["id"], shipping_status="TELEPORTED").status_code == 422

    def test_unknown_actor_and_contract(self, client, contract, users):
        assert_error(self._ship(client, contract["id"], user_id="ghost"), 404, "ghost")
        assert_error(self._ship(client, 999), 404, "999")


class TestContractDetail:
    def test_missing_contract(self, client):
        assert_error(client.get(f"{API}/contracts/999"), 404, "999")

    def test_detail_reports_active_step(self, client, in_review):
        data = get_contract(client, in_review["contract_id"])
        assert data["active_step"] == 1
        assert len(data["approvals"]) == 3
        assert [h["action"] for h in data["history"]][:1] == ["APPROVAL_PROCESS_STARTED"]

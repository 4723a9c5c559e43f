"""Tests for workflow templates."""

from tests.helpers import API, approval_for, assert_error, create_workflow, start_approval


class TestCreateWorkflow:
    def test_steps_are_numbered_in_order(self, client, users):
        response = create_workflow(
            client,
            name="Two step",
            steps=[
                {"name": "Manager", "role": "INITIATOR_MANAGER"},
                {
                    "name": "Review",
                    "type": "REVIEW",
                    "role": "CHIEF_LAWYER",
                    "parallel_roles": ["GENERAL_DIRECTOR", "CHIEF_LAWYER", "GENERAL_DIRECTOR"],
                },
            ],
        )
        assert response.status_code == 201
        data = response.json()
        assert [(s["order"], s["name"]) for s in data["steps"]] == [(1, "Manager"), (2, "Review")]
        assert data["steps"][1]["parallel_roles"] == ["GENERAL_DIRECTOR"]
        assert data["version"] == 1

    def test_first_workflow_becomes_default(self, client, users):
        first = create_workflow(client, name="First").json()
        second = create_workflow(client, name="Second").json()
        assert first["is_default"] is True
        assert second["is_default"] is False

    def test_name_required(self, client):
        assert create_workflow(client, name="").status_code == 422

    def test_amount_bounds_validated(self, client):
        response = create_workflow(client, min_amount=500, max_amount=100)
        assert response.status_code == 422

    def test_unknown_step_user(self, client):
        response = create_workflow(client, steps=[{"name": "Named", "user_id": "ghost"}])
        assert_error(response, 404, "ghost")


class TestListWorkflows:
    def test_filters(self, client, users):
        create_workflow(client, name="Active")
        create_workflow(client, name="Draft", status="DRAFT")
        active = client.get(f"{API}/workflows?status=ACTIVE").json()
        assert [w["name"] for w in active] == ["Active"]
        defaults = client.get(f"{API}/workflows?is_default=true").json()
        assert [w["name"] for w in defaults] == ["Active"]
        assert len(client.get(f"{API}/workflows").json()) == 2

    def test_missing_workflow(self, client):
        assert_error(client.get(f"{API}/workflows/77"), 404, "Workflow 77")


class TestUpdateWorkflow:
    def test_replacing_steps_bumps_version(self, client, workflow):
        response = client.patch(
            f"{API}/workflows/{workflow['id']}",
            json={"steps": [{"name": "Director only", "role": "GENERAL_DIRECTOR"}]},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 2
        assert [(s["order"], s["name"]) for s in data["steps"]] == [(1, "Director only")]

    def test_partial_update_keeps_steps(self, client, workflow):
        response = client.patch(
            f"{API}/workflows/{workflow['id']}",
            json={"description": "Standard route"},
        )
        data = response.json()
        assert data["description"] == "Standard route"
        assert data["version"] == 1
        assert len(data["steps"]) == 3

    def test_inverted_bounds_rejected(self, client, workflow):
        client.patch(f"{API}/workflows/{workflow['id']}", json={"min_amount": 1000})
        response = client.patch(f"{API}/workflows/{workflow['id']}", json={"max_amount": 10})
        assert_error(response, 400, "min_amount")

    def test_steps_in_use_cannot_be_replaced(self, client, workflow, in_review):
        response = client.patch(
            f"{API}/workflows/{workflow['id']}",
            json={"steps": [{"name": "New", "role": "GENERAL_DIRECTOR"}]},
        )
        assert_error(response, 409, "referenced by existing approvals")


class TestDefaultWorkflow:
    def test_set_default_moves_flag(self, client, workflow):
        other = create_workflow(client, name="Other").json()
        response = client.post(f"{API}/workflows/{other['id']}/default")
        assert response.status_code == 200
        assert response.json()["is_default"] is True
        assert client.get(f"{API}/workflows/{workflow['id']}").json()["is_default"] is False

    def test_inactive_cannot_be_default(self, client, workflow):
        draft = create_workflow(client, name="Draft", status="DRAFT").json()
        assert_error(client.post(f"{API}/workflows/{draft['id']}/default"), 409, "active")

    def test_new_default_routes_contracts(self, client, workflow, contract):
        other = create_workflow(
            client, name="Director", steps=[{"name": "Director", "role": "GENERAL_DIRECTOR"}]
        ).json()
        client.post(f"{API}/workflows/{other['id']}/default")
        data = start_approval(client, contract["id"], "initiator-1").json()
        assert data["workflow_id"] == other["id"]
        assert approval_for(data, "director-1")["step_number"] == 1


class TestDeleteWorkflow:
    def test_delete_unused(self, client, users):
        created = create_workflow(client, name="Temp").json()
        response = client.delete(f"{API}/workflows/{created['id']}")
        assert response.status_code == 204
        assert client.get(f"{API}/workflows/{created['id']}").status_code == 404

    def test_delete_in_use(self, client, workflow, in_review):
        response = client.delete(f"{API}/workflows/{workflow['id']}")
        assert_error(response, 409, "used by contracts")

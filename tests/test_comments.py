"""Tests for contract comment threads."""

from tests.helpers import (
    API,
    assert_error,
    create_contract,
    get_contract,
    notifications_for,
)


def _comment(client, contract_id, author_id, content="Looks good", parent_id=None):
    return client.post(
        f"{API}/contracts/{contract_id}/comments",
        json={"author_id": author_id, "content": content, "parent_id": parent_id},
    )


class TestCreateComment:
    def test_comment_notifies_initiator(self, client, contract, users):
        response = _comment(client, contract["id"], "lawyer-1", "Check clause 4")
        assert response.status_code == 201
        data = response.json()
        assert data["content"] == "Check clause 4"
        assert data["author"]["id"] == "lawyer-1"
        assert data["is_edited"] is False

        notifications = notifications_for(client, "initiator-1")
        assert [n["type"] for n in notifications] == ["COMMENT_ADDED"]

    def test_own_comment_does_not_notify(self, client, contract, users):
        _comment(client, contract["id"], "initiator-1")
        assert notifications_for(client, "initiator-1") == []

    def test_history_truncates_long_content(self, client, contract, users):
        _comment(client, contract["id"], "lawyer-1", "x" * 150)
        entry = get_contract(client, contract["id"])["history"][0]
        assert entry["action"] == "COMMENT_ADDED"
        assert entry["details"]["content"] == "x" * 100 + "..."

    def test_reply_must_share_contract(self, client, contract, users):
        other = create_contract(client, "initiator-1", number="C-other").json()
        parent = _comment(client, other["id"], "lawyer-1").json()
        response = _comment(client, contract["id"], "lawyer-1", parent_id=parent["id"])
        assert_error(response, 400, "another contract")

    def test_unknown_author_and_contract(self, client, contract, users):
        assert_error(_comment(client, contract["id"], "ghost"), 404, "ghost")
        assert_error(_comment(client, 999, "lawyer-1"), 404, "Contract 999")

    def test_empty_content(self, client, contract, users):
        assert _comment(client, contract["id"], "lawyer-1", "").status_code == 422


class TestListComments:
    def test_pagination_and_order(self, client, contract, users):
        for index in range(3):
            _comment(client, contract["id"], "lawyer-1", f"Comment {index}")
        url = f"{API}/contracts/{contract['id']}/comments"

        data = client.get(f"{url}?limit=2").json()
        assert data["pagination"]["total"] == 3
        assert data["pagination"]["total_pages"] == 2
        assert [c["content"] for c in data["comments"]] == ["Comment 2", "Comment 1"]

        data = client.get(f"{url}?sort_order=asc").json()
        assert data["comments"][0]["content"] == "Comment 0"


class TestEditAndDelete:
    def test_author_edits(self, client, contract, users):
        comment = _comment(client, contract["id"], "lawyer-1").json()
        response = client.patch(
            f"{API}/comments/{comment['id']}?user_id=lawyer-1",
            json={"content": "Revised"},
        )
        assert response.status_code == 200
        assert response.json()["content"] == "Revised"
        assert response.json()["is_edited"] is True

    def test_only_author_edits(self, client, contract, users):
        comment = _comment(client, contract["id"], "lawyer-1").json()
        response = client.patch(
            f"{API}/comments/{comment['id']}?user_id=manager-1",
            json={"content": "Hijacked"},
        )
        assert_error(response, 403, "author")

    def test_delete_removes_replies(self, client, contract, users):
        parent = _comment(client, contract["id"], "lawyer-1").json()
        _comment(client, contract["id"], "manager-1", "Agreed", parent_id=parent["id"])

        assert_error(
            client.delete(f"{API}/comments/{parent['id']}?user_id=manager-1"), 403
        )
        response = client.delete(f"{API}/comments/{parent['id']}?user_id=lawyer-1")
        assert response.status_code == 204
        data = client.get(f"{API}/contracts/{contract['id']}/comments").json()
        assert data["comments"] == []

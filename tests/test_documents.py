"""Tests for document registration and versioning."""

from tests.helpers import API, assert_error, get_contract, notifications_for

PDF = "application/pdf"


def _register(client, contract_id, filename="contract.pdf", author_id="initiator-1", **overrides):
    payload = {
        "filename": filename,
        "file_path": f"/uploads/{filename}",
        "file_size": 2048,
        "mime_type": PDF,
        "type": "CONTRACT",
        "author_id": author_id,
    }
    payload.update(overrides)
    return client.post(f"{API}/contracts/{contract_id}/documents", json=payload)


class TestRegisterDocument:
    def test_first_upload_is_version_one(self, client, contract, users):
        response = _register(client, contract["id"])
        assert response.status_code == 201
        data = response.json()
        assert data["filename"] == "contract.pdf"
        assert data["type"] == "CONTRACT"
        assert [v["version"] for v in data["versions"]] == [1]

        entry = get_contract(client, contract["id"])["history"][0]
        assert entry["action"] == "DOCUMENT_UPLOADED"
        assert entry["details"]["version"] == 1

    def test_same_filename_adds_version(self, client, contract, users):
        _register(client, contract["id"])
        response = _register(
            client,
            contract["id"],
            file_path="/uploads/contract-v2.pdf",
            file_size=4096,
            changes={"summary": "Updated payment terms"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["file_size"] == 4096
        assert [v["version"] for v in data["versions"]] == [2, 1]
        assert data["versions"][0]["changes"] == {"summary": "Updated payment terms"}

        documents = client.get(f"{API}/contracts/{contract['id']}/documents").json()
        assert len(documents) == 1

    def test_other_filename_is_separate_document(self, client, contract, users):
        _register(client, contract["id"])
        _register(client, contract["id"], filename="annex.docx", mime_type=(
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        ))
        documents = client.get(f"{API}/contracts/{contract['id']}/documents").json()
        assert [d["filename"] for d in documents] == ["annex.docx", "contract.pdf"]

    def test_upload_by_other_user_notifies_initiator(self, client, contract, users):
        _register(client, contract["id"], author_id="lawyer-1")
        types = [n["type"] for n in notifications_for(client, "initiator-1")]
        assert types == ["DOCUMENT_UPLOADED"]

    def test_unsupported_type(self, client, contract, users):
        response = _register(client, contract["id"], filename="x.exe", mime_type="application/x-msdownload")
        assert_error(response, 400, "Unsupported file type")

    def test_file_too_large(self, client, contract, users):
        response = _register(client, contract["id"], file_size=11 * 1024 * 1024)
        assert_error(response, 400, "too large")

    def test_unknown_author(self, client, contract, users):
        assert_error(_register(client, contract["id"], author_id="ghost"), 404, "ghost")


class TestVersions:
    def test_versions_newest_first(self, client, contract, users):
        document = _register(client, contract["id"]).json()
        _register(client, contract["id"], file_path="/uploads/v2.pdf")
        _register(client, contract["id"], file_path="/uploads/v3.pdf")

        response = client.get(f"{API}/documents/{document['id']}/versions")
        assert response.status_code == 200
        versions = response.json()
        assert [v["version"] for v in versions] == [3, 2, 1]
        assert versions[0]["file_path"] == "/uploads/v3.pdf"

    def test_missing_document(self, client):
        assert_error(client.get(f"{API}/documents/404/versions"), 404, "Document 404")

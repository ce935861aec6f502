"""Tests for the /api/v1/cases endpoints."""

from datetime import timedelta

from casetrack.core.security import create_access_token

from conftest import ADMIN, BRANCH, OTHER, OWNER, auth_headers, case_payload, proceeding_payload

BASE = "/api/v1/cases"


def create(client, headers=None, **overrides):
    return client.post(f"{BASE}/", json=case_payload(**overrides), headers=headers or auth_headers())


class TestAuthentication:
    def test_missing_token(self, client):
        assert client.get(f"{BASE}/").status_code == 401

    def test_invalid_token(self, client):
        resp = client.get(f"{BASE}/", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_expired_token(self, client):
        token = create_access_token(OWNER, expires_delta=timedelta(minutes=-5))
        resp = client.get(f"{BASE}/", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token expired"

    def test_token_without_email(self, client):
        token = create_access_token("")
        resp = client.get(f"{BASE}/", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_legacy_header(self, client):
        token = create_access_token(OWNER)
        resp = client.get(f"{BASE}/", headers={"x-access-token": token})
        assert resp.status_code == 200


class TestCreate:
    def test_create_returns_201(self, client):
        resp = create(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["email"] == OWNER
        assert body["status"] == "PENDING"
        assert body["sections"] == ["420"]

    def test_validation_errors_are_listed(self, client):
        resp = create(client, writ_sub_type=None, writ_year=1800)
        assert resp.status_code == 400
        errors = resp.json()["detail"]["errors"]
        assert "writ_sub_type: required when writ_type is BAIL" in errors
        assert any(e.startswith("writ_year") for e in errors)

    def test_duplicate_case_number(self, client):
        create(client)
        assert create(client).status_code == 409


class TestListAndSearch:
    def test_listing_includes_branch_cases(self, client):
        create(client)
        create(
            client, headers=auth_headers(OTHER, branch="North"),
            case_number="FIR-202/2024", branch_name="North",
        )

        own = client.get(f"{BASE}/", headers=auth_headers()).json()
        assert own["total"] == 1

        colleague = client.get(
            f"{BASE}/", headers=auth_headers("colleague@police.gov.in", branch=BRANCH)
        ).json()
        assert [c["case_number"] for c in colleague["items"]] == ["FIR-101/2024"]

        everything = client.get(f"{BASE}/", headers=auth_headers(ADMIN, role="admin", branch=None)).json()
        assert everything["total"] == 2

    def test_filters_and_pagination(self, client):
        for n in range(3):
            create(client, case_number=f"FIR-10{n}/2024", writ_type="QUASHING", writ_sub_type=None)
        create(client, case_number="FIR-900/2024")

        resp = client.get(f"{BASE}/", params={"writ_type": "QUASHING", "per_page": 2}, headers=auth_headers())
        body = resp.json()
        assert body["total"] == 3
        assert body["total_pages"] == 2
        assert len(body["items"]) == 2

    def test_search_matches_officer_and_petitioner(self, client):
        create(client)
        by_officer = client.get(f"{BASE}/search", params={"q": "sharma"}, headers=auth_headers())
        by_petitioner = client.get(f"{BASE}/search", params={"q": "mohan"}, headers=auth_headers())
        nothing = client.get(f"{BASE}/search", params={"q": "nobody"}, headers=auth_headers())

        assert len(by_officer.json()) == 1
        assert len(by_petitioner.json()) == 1
        assert nothing.json() == []


class TestDetailUpdateDelete:
    def test_detail_lists_finalized_proceedings_only(self, client):
        case_id = create(client).json()["id"]
        headers = auth_headers()
        client.post("/api/v1/proceedings/", json=proceeding_payload(case_id), headers=headers)
        client.post("/api/v1/proceedings/", json=proceeding_payload(case_id, draft=True), headers=headers)

        body = client.get(f"{BASE}/{case_id}", headers=headers).json()
        assert [p["sequence"] for p in body["proceedings"]] == [1]

    def test_stranger_gets_404(self, client):
        case_id = create(client).json()["id"]
        stranger = auth_headers(OTHER, branch="North")
        assert client.get(f"{BASE}/{case_id}", headers=stranger).status_code == 404
        assert client.patch(f"{BASE}/{case_id}", json={"act": "BNS"}, headers=stranger).status_code == 404
        assert client.delete(f"{BASE}/{case_id}", headers=stranger).status_code == 404

    def test_admin_role_is_case_insensitive(self, client):
        case_id = create(client).json()["id"]
        resp = client.get(f"{BASE}/{case_id}", headers=auth_headers(ADMIN, role="ADMIN", branch=None))
        assert resp.status_code == 200

    def test_patch_merges_and_revalidates(self, client):
        case_id = create(client).json()["id"]
        ok = client.patch(f"{BASE}/{case_id}", json={"police_station": "Sadar"}, headers=auth_headers())
        assert ok.status_code == 200
        assert ok.json()["police_station"] == "Sadar"
        assert ok.json()["writ_sub_type"] == "REGULAR"

        bad = client.patch(f"{BASE}/{case_id}", json={"writ_type_other": "Mandamus"}, headers=auth_headers())
        assert bad.status_code == 400

    def test_patch_rejects_status(self, client):
        case_id = create(client).json()["id"]
        resp = client.patch(f"{BASE}/{case_id}", json={"status": "ALLOWED"}, headers=auth_headers())
        assert resp.status_code == 400

    def test_delete_removes_proceedings(self, client):
        case_id = create(client).json()["id"]
        headers = auth_headers()
        proceeding_id = client.post(
            "/api/v1/proceedings/", json=proceeding_payload(case_id), headers=headers
        ).json()["id"]

        resp = client.delete(f"{BASE}/{case_id}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["case_id"] == case_id
        assert client.get(f"{BASE}/{case_id}", headers=headers).status_code == 404
        assert client.get(f"/api/v1/proceedings/{proceeding_id}", headers=headers).status_code == 404

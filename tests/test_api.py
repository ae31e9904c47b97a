from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_engine
from app.core.security import create_access_token
from app.main import app

from tests.conftest import CANDIDATE, DEROGATION_REASON, DIRECTOR, NOW, proposed_members


def auth(user_id, role):
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


DOCTORANT = auth(CANDIDATE, "doctorant")
DIRECTEUR = auth(DIRECTOR, "directeur")
ADMIN = auth("admin-1", "admin")
PED = auth("ped-1", "ped")


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_inscription(client):
    response = client.post(
        "/api/v1/inscriptions/",
        json={"campaign_id": "2025-2026", "director_id": DIRECTOR},
        headers=DOCTORANT,
    )
    assert response.status_code == 201
    return response.json()["entity"]["id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_requires_authentication(client):
    response = client.post("/api/v1/inscriptions/", json={"campaign_id": "c", "director_id": DIRECTOR})
    assert response.status_code == 401


def test_role_is_checked(client):
    response = client.post(
        "/api/v1/inscriptions/",
        json={"campaign_id": "c", "director_id": DIRECTOR},
        headers=DIRECTEUR,
    )
    assert response.status_code == 403


def test_inscription_flow_with_etags(client, enroll):
    enroll(12)
    inscription_id = create_inscription(client)

    response = client.get(f"/api/v1/inscriptions/{inscription_id}", headers=DOCTORANT)
    assert response.headers["ETag"] == '"1"'

    response = client.post(f"/api/v1/inscriptions/{inscription_id}/submit", headers={**DOCTORANT, "If-Match": '"1"'})
    assert response.status_code == 200
    assert response.json()["entity"]["status"] == "PENDING_DIRECTOR"
    assert response.json()["version"] == 2
    assert len(response.json()["transitions"]) == 2

    # version périmée
    response = client.post(
        f"/api/v1/inscriptions/{inscription_id}/director-decision",
        json={"approved": True},
        headers={**DIRECTEUR, "If-Match": "1"},
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "stale_state"

    response = client.post(
        f"/api/v1/inscriptions/{inscription_id}/director-decision",
        json={"approved": False, "comment": ""},
        headers={**DIRECTEUR, "If-Match": "2"},
    )
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "missing_comment"

    response = client.post(
        f"/api/v1/inscriptions/{inscription_id}/director-decision",
        json={"approved": True},
        headers={**DIRECTEUR, "If-Match": "2"},
    )
    assert response.json()["entity"]["status"] == "PENDING_ADMIN"
    assert response.headers["ETag"] == '"3"'

    response = client.post(
        f"/api/v1/inscriptions/{inscription_id}/admin-decision",
        json={"approved": True},
        headers=ADMIN,
    )
    assert response.json()["entity"]["status"] == "VALIDATED"


def test_other_doctorant_cannot_read(client):
    inscription_id = create_inscription(client)
    response = client.get(f"/api/v1/inscriptions/{inscription_id}", headers=auth("cand-2", "doctorant"))
    assert response.status_code == 403


def test_duplicate_and_not_found(client):
    create_inscription(client)
    response = client.post(
        "/api/v1/inscriptions/",
        json={"campaign_id": "2025-2026", "director_id": DIRECTOR},
        headers=DOCTORANT,
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "duplicate_inscription"

    response = client.get("/api/v1/inscriptions/unknown", headers=ADMIN)
    assert response.status_code == 404


def test_derogation_flow(client, enroll):
    enroll(40)
    inscription_id = create_inscription(client)
    response = client.post(
        f"/api/v1/inscriptions/{inscription_id}/submit",
        json={"derogation_reason": DEROGATION_REASON},
        headers=DOCTORANT,
    )
    derogation_id = response.json()["entity"]["derogation"]["id"]

    client.post(f"/api/v1/inscriptions/{inscription_id}/director-decision", json={"approved": True}, headers=DIRECTEUR)
    response = client.post(f"/api/v1/inscriptions/{inscription_id}/admin-decision", json={"approved": True}, headers=ADMIN)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "derogation_pending"

    response = client.post(f"/api/v1/derogations/{derogation_id}/director-decision", json={"approved": True}, headers=DIRECTEUR)
    assert response.json()["entity"]["derogation"]["status"] == "PENDING_AUTHORITY"

    response = client.post(f"/api/v1/derogations/{derogation_id}/authority-decision", json={"approved": True}, headers=PED)
    assert response.json()["entity"]["derogation"]["status"] == "APPROVED"

    response = client.post(f"/api/v1/inscriptions/{inscription_id}/admin-decision", json={"approved": True}, headers=ADMIN)
    assert response.json()["entity"]["status"] == "VALIDATED"


def test_soutenance_flow(client, eligible):
    response = client.post(
        "/api/v1/soutenances/",
        json={"thesis_title": "Apprentissage fédéré", "director_id": DIRECTOR},
        headers=DOCTORANT,
    )
    assert response.status_code == 201
    soutenance_id = response.json()["entity"]["id"]

    members = [m.model_dump(mode="json", exclude_none=True) for m in proposed_members()]
    response = client.put(f"/api/v1/soutenances/{soutenance_id}/jury", json={"members": members}, headers=DIRECTEUR)
    assert response.status_code == 200
    assert response.json()["entity"]["jury_status"] == "PROPOSED"

    response = client.post(f"/api/v1/soutenances/{soutenance_id}/submit", headers=DOCTORANT)
    assert response.json()["entity"]["status"] == "UNDER_VALIDATION"

    client.post(f"/api/v1/soutenances/{soutenance_id}/jury/decision", json={"approved": True}, headers=PED)
    rapporteurs = [m["id"] for m in response.json()["entity"]["jury"] if m["role"] == "RAPPORTEUR"]
    for member_id in rapporteurs:
        response = client.post(
            f"/api/v1/soutenances/{soutenance_id}/reports",
            json={"member_id": member_id, "favorable": True},
            headers=PED,
        )
        assert response.status_code == 200
    assert len(response.json()["entity"]["reports"]) == 2

    response = client.post(
        f"/api/v1/soutenances/{soutenance_id}/authorize",
        json={"scheduled_date": (NOW + timedelta(days=20)).isoformat(), "venue": "Salle des thèses"},
        headers=PED,
    )
    assert response.status_code == 200
    assert response.json()["entity"]["status"] == "AUTHORIZED"


def test_invalid_jury_is_unprocessable(client, eligible):
    response = client.post(
        "/api/v1/soutenances/",
        json={"thesis_title": "Titre", "director_id": DIRECTOR},
        headers=DOCTORANT,
    )
    soutenance_id = response.json()["entity"]["id"]

    response = client.put(
        f"/api/v1/soutenances/{soutenance_id}/jury",
        json={"members": [{"name": "Pr. Seul", "role": "PRESIDENT"}]},
        headers=DIRECTEUR,
    )
    assert response.status_code == 422
    assert "jury size 2 outside [4, 8]" in response.json()["detail"]["violations"]


def test_prerequisites_endpoint(client, eligible, records):
    records.set(CANDIDATE, publications=1, training_hours=240)
    response = client.get(f"/api/v1/candidates/{CANDIDATE}/prerequisites", headers=DOCTORANT)

    assert response.status_code == 200
    body = response.json()
    assert body["all_satisfied"] is False
    assert body["details"][0] == {
        "criterion": "publications",
        "satisfied": False,
        "required_value": "2",
        "actual_value": "1",
    }


def test_other_director_cannot_decide_derogation(client, enroll):
    enroll(40)
    inscription_id = create_inscription(client)
    response = client.post(
        f"/api/v1/inscriptions/{inscription_id}/submit",
        json={"derogation_reason": DEROGATION_REASON},
        headers=DOCTORANT,
    )
    derogation_id = response.json()["entity"]["derogation"]["id"]

    response = client.post(
        f"/api/v1/derogations/{derogation_id}/director-decision",
        json={"approved": False, "comment": "non"},
        headers=auth("dir-2", "directeur"),
    )
    assert response.status_code == 403

    response = client.get(f"/api/v1/inscriptions/{inscription_id}", headers=ADMIN)
    assert response.json()["entity"]["status"] == "PENDING_DIRECTOR"
    assert response.json()["entity"]["derogation"]["status"] == "PENDING_DIRECTOR"


def test_closed_campaign_is_a_conflict(client, campaigns):
    campaigns.add("2024-2025", NOW - timedelta(days=400), NOW - timedelta(days=100))
    response = client.post(
        "/api/v1/inscriptions/",
        json={"campaign_id": "2024-2025", "director_id": DIRECTOR},
        headers=DOCTORANT,
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "campaign_closed"


def test_authorize_without_reports_is_a_conflict(client, eligible):
    response = client.post(
        "/api/v1/soutenances/",
        json={"thesis_title": "Titre", "director_id": DIRECTOR},
        headers=DOCTORANT,
    )
    soutenance_id = response.json()["entity"]["id"]
    members = [m.model_dump(mode="json", exclude_none=True) for m in proposed_members()]
    client.put(f"/api/v1/soutenances/{soutenance_id}/jury", json={"members": members}, headers=DIRECTEUR)
    client.post(f"/api/v1/soutenances/{soutenance_id}/submit", headers=DOCTORANT)
    client.post(f"/api/v1/soutenances/{soutenance_id}/jury/decision", json={"approved": True}, headers=PED)

    response = client.post(
        f"/api/v1/soutenances/{soutenance_id}/authorize",
        json={"scheduled_date": (NOW + timedelta(days=20)).isoformat(), "venue": "Salle des thèses"},
        headers=PED,
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "reports_incomplete"
    assert len(response.json()["detail"]["pending"]) == 2

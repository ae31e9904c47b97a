import pytest
from pydantic import ValidationError

from app.models.doctoral import (
    DefenseResult,
    DerogationStatus,
    Inscription,
    InscriptionStatus,
    JuryMember,
    JuryRole,
    JuryStatus,
    Soutenance,
    SoutenanceStatus,
)


@pytest.mark.parametrize("legacy, canonical", [
    ("BROUILLON", InscriptionStatus.DRAFT),
    ("EN_ATTENTE_DIRECTEUR", InscriptionStatus.PENDING_DIRECTOR),
    ("EN_ATTENTE_ADMIN", InscriptionStatus.PENDING_ADMIN),
    ("VALIDE", InscriptionStatus.VALIDATED),
    ("REJETE", InscriptionStatus.REJECTED),
    ("pending_admin", InscriptionStatus.PENDING_ADMIN),
])
def test_legacy_inscription_status(legacy, canonical):
    assert InscriptionStatus.parse(legacy) == canonical


def test_legacy_values_in_stored_documents_are_translated():
    doc = {
        "id": "i-1",
        "candidate_id": "cand-1",
        "director_id": "dir-1",
        "campaign_id": "2024-2025",
        "status": "EN_ATTENTE_ADMIN",
        "created_at": "2024-10-01T08:00:00",
        "derogation": {
            "id": "d-1",
            "inscription_id": "i-1",
            "reason": "x" * 60,
            "status": "EN_ATTENTE_PED",
            "duration_months": 40,
            "created_at": "2024-10-01T08:00:00Z",
        },
        "version": 7,
    }
    inscription = Inscription.from_doc(doc)

    assert inscription.status == InscriptionStatus.PENDING_ADMIN
    assert inscription.derogation.status == DerogationStatus.PENDING_AUTHORITY
    assert inscription.created_at.tzinfo is not None

    written = inscription.to_dict()
    assert written["status"] == "PENDING_ADMIN"
    assert written["derogation"]["status"] == "PENDING_AUTHORITY"
    assert "id" not in written
    assert "version" not in written


def test_legacy_soutenance_and_jury_values():
    soutenance = Soutenance.model_validate({
        "candidate_id": "cand-1",
        "director_id": "dir-1",
        "thesis_title": "Titre",
        "status": "EN_COURS_VALIDATION",
        "jury_status": "VALIDE",
        "jury": [{"name": "Dr. Petit", "role": "EXAMINATEUR"}, {"name": "Pr. Kabeya", "role": "DIRECTEUR"}],
        "created_at": "2025-01-10T09:00:00Z",
    })

    assert soutenance.status == SoutenanceStatus.UNDER_VALIDATION
    assert soutenance.jury_status == JuryStatus.VALIDATED
    assert [m.role for m in soutenance.jury] == [JuryRole.EXAMINER, JuryRole.DIRECTOR]
    assert DefenseResult.parse("AJOURNE") == DefenseResult.DEFERRED


def test_unknown_status_is_rejected():
    with pytest.raises(ValidationError):
        JuryMember(name="X", role="ASSESSEUR")

from datetime import timedelta
import threading

import pytest

from app.models.doctoral import DerogationStatus, InscriptionStatus
from app.workflow_engine.errors import (
    CampaignClosed,
    DerogationPending,
    DoctorateDurationExceeded,
    DuplicateInscription,
    EntityNotFound,
    InvalidTransition,
    MissingComment,
)

from tests.conftest import (
    ADMIN_ACTOR,
    CANDIDATE,
    DEROGATION_REASON,
    DIRECTOR,
    DIRECTOR_ACTOR,
    DOCTORANT_ACTOR,
    NOW,
    PED_ACTOR,
)


@pytest.fixture
def inscription_id(engine):
    return engine.create_inscription(CANDIDATE, DIRECTOR, "2025-2026").entity.id


def statuses(result):
    return [(r.from_status, r.to_status) for r in result.transitions]


def test_create_starts_in_draft(engine):
    result = engine.create_inscription(CANDIDATE, DIRECTOR, "2025-2026", thesis_subject="Réseaux de capteurs")

    assert result.version == 1
    assert result.entity.status == InscriptionStatus.DRAFT
    assert result.entity.thesis_subject == "Réseaux de capteurs"


def test_submit_auto_advances_to_pending_director(engine, enroll, inscription_id):
    enroll(12)
    result = engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)

    assert result.entity.status == InscriptionStatus.PENDING_DIRECTOR
    assert result.entity.duration_months == 12
    assert result.entity.derogation is None
    assert statuses(result) == [("DRAFT", "SUBMITTED"), ("SUBMITTED", "PENDING_DIRECTOR")]


def test_exactly_36_months_needs_no_derogation(engine, enroll, inscription_id):
    enroll(36)
    result = engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)

    assert result.entity.duration_months == 36
    assert result.entity.derogation is None


def test_37_months_opens_a_derogation(engine, enroll, inscription_id):
    enroll(37)
    result = engine.submit_inscription(inscription_id, DOCTORANT_ACTOR, derogation_reason=DEROGATION_REASON)

    derogation = result.entity.derogation
    assert derogation is not None
    assert derogation.status == DerogationStatus.PENDING_DIRECTOR
    assert derogation.inscription_id == inscription_id
    assert derogation.duration_months == 37
    assert result.transitions[-1].entity_type == "derogation"


@pytest.mark.parametrize("reason", [None, "", "Trop court"])
def test_derogation_reason_is_mandatory_above_threshold(engine, enroll, inscription_id, reason):
    enroll(40)
    with pytest.raises(MissingComment) as exc:
        engine.submit_inscription(inscription_id, DOCTORANT_ACTOR, derogation_reason=reason)

    assert exc.value.details["field"] == "derogation_reason"
    inscription, version = engine.get_inscription(inscription_id)
    assert inscription.status == InscriptionStatus.DRAFT
    assert version == 1


def test_six_year_cap(engine, enroll, inscription_id):
    enroll(72)
    with pytest.raises(DoctorateDurationExceeded):
        engine.submit_inscription(inscription_id, DOCTORANT_ACTOR, derogation_reason=DEROGATION_REASON)


def test_submit_only_from_draft(engine, enroll, inscription_id):
    enroll(12)
    engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)
    with pytest.raises(InvalidTransition):
        engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)


def test_director_then_admin_approval(engine, enroll, inscription_id):
    enroll(12)
    engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)

    result = engine.validate_inscription_by_director(inscription_id, True, DIRECTOR_ACTOR)
    assert result.entity.status == InscriptionStatus.PENDING_ADMIN
    assert statuses(result) == [("PENDING_DIRECTOR", "DIRECTOR_APPROVED"), ("DIRECTOR_APPROVED", "PENDING_ADMIN")]

    result = engine.validate_inscription_by_admin(inscription_id, True, ADMIN_ACTOR)
    assert result.entity.status == InscriptionStatus.VALIDATED
    assert result.entity.admin_decision.decided_by == ADMIN_ACTOR.id
    assert len(result.entity.history) == 5


def test_admin_cannot_decide_before_director(engine, enroll, inscription_id):
    enroll(12)
    engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)
    with pytest.raises(InvalidTransition):
        engine.validate_inscription_by_admin(inscription_id, True, ADMIN_ACTOR)


def test_scenario_d_director_rejection(engine, enroll, inscription_id):
    enroll(12)
    engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)

    with pytest.raises(MissingComment):
        engine.validate_inscription_by_director(inscription_id, False, DIRECTOR_ACTOR, comment="  ")

    result = engine.validate_inscription_by_director(
        inscription_id, False, DIRECTOR_ACTOR, comment="Sujet hors périmètre du laboratoire"
    )
    assert result.entity.status == InscriptionStatus.DIRECTOR_REJECTED
    assert result.entity.is_terminal

    with pytest.raises(InvalidTransition):
        engine.validate_inscription_by_director(inscription_id, True, DIRECTOR_ACTOR)
    with pytest.raises(InvalidTransition):
        engine.validate_inscription_by_admin(inscription_id, True, ADMIN_ACTOR)
    with pytest.raises(InvalidTransition):
        engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)


def test_admin_rejection_requires_comment(engine, enroll, inscription_id):
    enroll(12)
    engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)
    engine.validate_inscription_by_director(inscription_id, True, DIRECTOR_ACTOR)

    with pytest.raises(MissingComment):
        engine.validate_inscription_by_admin(inscription_id, False, ADMIN_ACTOR)
    result = engine.validate_inscription_by_admin(inscription_id, False, ADMIN_ACTOR, comment="Dossier incomplet")
    assert result.entity.status == InscriptionStatus.REJECTED


def test_scenario_a_derogation_pending_blocks_admin_approval(engine, enroll, inscription_id):
    enroll(40)
    engine.submit_inscription(inscription_id, DOCTORANT_ACTOR, derogation_reason=DEROGATION_REASON)
    engine.validate_inscription_by_director(inscription_id, True, DIRECTOR_ACTOR)
    _, version = engine.get_inscription(inscription_id)

    with pytest.raises(DerogationPending) as exc:
        engine.validate_inscription_by_admin(inscription_id, True, ADMIN_ACTOR)
    assert exc.value.details["derogation_status"] == "PENDING_DIRECTOR"

    inscription, after = engine.get_inscription(inscription_id)
    assert inscription.status == InscriptionStatus.PENDING_ADMIN
    assert after == version


def test_validated_implies_approved_derogation(engine, enroll, inscription_id):
    enroll(40)
    submitted = engine.submit_inscription(inscription_id, DOCTORANT_ACTOR, derogation_reason=DEROGATION_REASON)
    derogation_id = submitted.entity.derogation.id
    engine.validate_inscription_by_director(inscription_id, True, DIRECTOR_ACTOR)

    engine.decide_derogation_by_director(derogation_id, True, DIRECTOR_ACTOR)
    with pytest.raises(DerogationPending):
        engine.validate_inscription_by_admin(inscription_id, True, ADMIN_ACTOR)

    engine.decide_derogation_by_authority(derogation_id, True, PED_ACTOR)
    result = engine.validate_inscription_by_admin(inscription_id, True, ADMIN_ACTOR)

    assert result.entity.status == InscriptionStatus.VALIDATED
    assert result.entity.derogation.status == DerogationStatus.APPROVED


def test_admin_may_reject_while_derogation_pending(engine, enroll, inscription_id):
    enroll(40)
    engine.submit_inscription(inscription_id, DOCTORANT_ACTOR, derogation_reason=DEROGATION_REASON)
    engine.validate_inscription_by_director(inscription_id, True, DIRECTOR_ACTOR)

    result = engine.validate_inscription_by_admin(inscription_id, False, ADMIN_ACTOR, comment="Hors délai")
    assert result.entity.status == InscriptionStatus.REJECTED


def test_one_active_inscription_per_campaign(engine, enroll, inscription_id):
    with pytest.raises(DuplicateInscription) as exc:
        engine.create_inscription(CANDIDATE, DIRECTOR, "2025-2026")
    assert exc.value.details["existing_id"] == inscription_id

    # autre campagne : autorisé
    engine.create_inscription(CANDIDATE, DIRECTOR, "2026-2027")

    enroll(12)
    engine.submit_inscription(inscription_id, DOCTORANT_ACTOR)
    engine.validate_inscription_by_director(inscription_id, False, DIRECTOR_ACTOR, comment="Financement absent")
    assert engine.create_inscription(CANDIDATE, DIRECTOR, "2025-2026").entity.status == InscriptionStatus.DRAFT


def test_racing_creates_leave_one_active_inscription(engine):
    barrier = threading.Barrier(6)
    outcomes = []

    def create():
        barrier.wait()
        try:
            outcomes.append(engine.create_inscription(CANDIDATE, DIRECTOR, "2025-2026").version)
        except DuplicateInscription:
            outcomes.append("duplicate")

    threads = [threading.Thread(target=create) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes, key=str) == [1] + ["duplicate"] * 5
    assert len(engine.list_inscriptions(CANDIDATE)) == 1


def test_campaign_must_be_open(engine, campaigns):
    campaigns.add("2023-2024", NOW - timedelta(days=400), NOW - timedelta(days=200))
    campaigns.add("2027-2028", NOW + timedelta(days=200), NOW + timedelta(days=400))
    campaigns.add("suspendue", NOW - timedelta(days=10), NOW + timedelta(days=10), active=False)

    for campaign_id in ("2023-2024", "2027-2028", "suspendue"):
        with pytest.raises(CampaignClosed):
            engine.create_inscription(CANDIDATE, DIRECTOR, campaign_id)
    with pytest.raises(EntityNotFound):
        engine.create_inscription(CANDIDATE, DIRECTOR, "inconnue")

    assert engine.list_inscriptions(CANDIDATE) == []

from datetime import datetime, timedelta, timezone

import pytest

from app.db.memory import (
    InMemoryAcademicRecords,
    InMemoryCampaigns,
    InMemoryCandidateHistory,
    InMemoryDocumentStore,
    InMemoryRepository,
)
from app.models.doctoral import Enrollment, JuryMember, JuryRole
from app.workflow_engine import Actor, WorkflowEngine, WorkflowRules
from app.workflow_engine.ports import FixedClock

NOW = datetime(2025, 6, 15, 10, 0, tzinfo=timezone.utc)

CANDIDATE = "cand-1"
DIRECTOR = "dir-1"

DOCTORANT_ACTOR = Actor(id=CANDIDATE, role="doctorant")
DIRECTOR_ACTOR = Actor(id=DIRECTOR, role="directeur")
ADMIN_ACTOR = Actor(id="admin-1", role="admin")
PED_ACTOR = Actor(id="ped-1", role="ped")

DEROGATION_REASON = (
    "Interruption de huit mois pour raisons médicales, "
    "campagne de mesures retardée par le laboratoire partenaire."
)


def months_ago(n: int) -> datetime:
    total = NOW.year * 12 + (NOW.month - 1) - n
    return NOW.replace(year=total // 12, month=total % 12 + 1)


def proposed_members():
    """Jury sans directeur (ajouté automatiquement) : 6 membres, 3 externes"""
    return [
        JuryMember(name="Pr. Martin", affiliation="Université de Lyon", role=JuryRole.PRESIDENT, is_external=True),
        JuryMember(name="Pr. Diallo", affiliation="Université de Dakar", role=JuryRole.RAPPORTEUR, is_external=True),
        JuryMember(name="Dr. Weber", affiliation="ETH Zurich", role=JuryRole.RAPPORTEUR, is_external=True),
        JuryMember(name="Dr. Petit", role=JuryRole.EXAMINER),
        JuryMember(name="Dr. Leroy", role=JuryRole.EXAMINER),
    ]


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def rules():
    return WorkflowRules.get_default_rules()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def history():
    return InMemoryCandidateHistory()


@pytest.fixture
def documents():
    return InMemoryDocumentStore()


@pytest.fixture
def records():
    return InMemoryAcademicRecords()


@pytest.fixture
def campaigns():
    """Campagnes 2025-2026 et 2026-2027 ouvertes à NOW"""
    calendar = InMemoryCampaigns()
    for campaign_id in ("2025-2026", "2026-2027"):
        calendar.add(campaign_id, NOW - timedelta(days=60), NOW + timedelta(days=60))
    return calendar


@pytest.fixture
def engine(repository, history, documents, records, campaigns, clock, rules):
    return WorkflowEngine(repository, history, documents, records, campaigns, clock=clock, rules=rules)


@pytest.fixture
def enroll(history):
    def _enroll(months: int, candidate_id: str = CANDIDATE):
        history.add(Enrollment(candidate_id=candidate_id, started_at=months_ago(months)))
    return _enroll


@pytest.fixture
def eligible(enroll, documents, records, rules):
    """Doctorant remplissant les quatre prérequis de soutenance"""
    enroll(30)
    records.set(CANDIDATE, publications=3, training_hours=240)
    for doc_type in rules.required_defense_documents:
        documents.add(CANDIDATE, doc_type)


def file_reports(engine, soutenance_id, actor):
    """Rapports favorables de tous les rapporteurs du jury"""
    soutenance, _ = engine.get_soutenance(soutenance_id)
    for member in soutenance.jury:
        if member.role == JuryRole.RAPPORTEUR:
            engine.submit_report(soutenance_id, member.id, True, actor)

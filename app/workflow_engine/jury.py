"""
Validation de la composition du jury de soutenance

Pure function: all rules are evaluated independently so that every
violation is reported at once.
"""
import math
from typing import List, Optional

from pydantic import BaseModel

from app.models.doctoral import JuryMember, JuryRole
from app.workflow_engine.rules import WorkflowRules


class JuryValidation(BaseModel):
    valid: bool
    violations: List[str]


def _count(members: List[JuryMember], role: JuryRole, external: Optional[bool] = None) -> int:
    return sum(
        1 for m in members
        if m.role == role and (external is None or m.is_external == external)
    )


def validate_jury(
    members: List[JuryMember],
    director_id: Optional[str] = None,
    rules: Optional[WorkflowRules] = None,
) -> JuryValidation:
    """
    Vérifier une proposition de jury.

    Règles :
    - taille comprise entre jury_min_members et jury_max_members ;
    - exactement un président ;
    - au moins jury_min_external_rapporteurs rapporteurs externes ;
    - au moins 50% de membres externes (arrondi supérieur) ;
    - exactement un directeur, qui est le directeur de thèse (si director_id
      est fourni) et n'est pas externe.
    """
    rules = rules or WorkflowRules.get_default_rules()
    n = len(members)
    violations: List[str] = []

    if not rules.jury_min_members <= n <= rules.jury_max_members:
        violations.append(f"jury size {n} outside [{rules.jury_min_members}, {rules.jury_max_members}]")

    presidents = _count(members, JuryRole.PRESIDENT)
    if presidents != 1:
        violations.append(f"exactly one president required (found {presidents})")

    if rules.jury_min_rapporteurs and _count(members, JuryRole.RAPPORTEUR) < rules.jury_min_rapporteurs:
        violations.append(f"min {rules.jury_min_rapporteurs} rapporteurs")

    if (rules.jury_min_external_rapporteurs
            and _count(members, JuryRole.RAPPORTEUR, external=True) < rules.jury_min_external_rapporteurs):
        violations.append(f"min {rules.jury_min_external_rapporteurs} external rapporteurs")

    if rules.jury_external_quota:
        required = math.ceil(n / 2)
        external = sum(1 for m in members if m.is_external)
        if external < required:
            violations.append(f"external ratio {external}/{n} < required {required}/{n}")

    directors = [m for m in members if m.role == JuryRole.DIRECTOR]
    if len(directors) != 1:
        violations.append(f"exactly one director required (found {len(directors)})")
    elif director_id is not None:
        director = directors[0]
        if director.id != director_id:
            violations.append(f"director member must be {director_id}")
        elif director.is_external:
            violations.append("thesis director cannot be external")

    if director_id is not None:
        for m in members:
            if m.id == director_id and m.role != JuryRole.DIRECTOR:
                violations.append(f"thesis director {director_id} must keep role DIRECTOR")

    return JuryValidation(valid=not violations, violations=violations)

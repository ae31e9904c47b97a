"""
Moteur du workflow doctoral

Ce module contient toute la logique métier pour :
- Inscriptions doctorales (avis du directeur, validation administrative)
- Dérogations de durée
- Demandes de soutenance et procès-verbal
- Composition du jury
- Prérequis de soutenance
"""
from app.workflow_engine.engine import CommandResult, WorkflowEngine
from app.workflow_engine.rules import WorkflowRules
from app.workflow_engine.transitions import Actor

__all__ = ["WorkflowEngine", "CommandResult", "WorkflowRules", "Actor"]

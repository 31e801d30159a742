"""
Dependency injection for web routes.
"""

from regscan.database import Database
from regscan.scanner.learning import RuleLearner
from regscan.scanner.orchestrator import ScanOrchestrator
from regscan.services import get_db as service_get_db
from regscan.services import get_learner as service_get_learner
from regscan.services import get_orchestrator as service_get_orchestrator


def get_db() -> Database:
    """Get the shared database instance."""
    return service_get_db()


def get_orchestrator() -> ScanOrchestrator:
    return service_get_orchestrator()


def get_learner() -> RuleLearner:
    return service_get_learner()

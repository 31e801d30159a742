"""Shared service accessors for core scanner components.

Provides a single place to retrieve the configured database, analyzer and
orchestrator, so entrypoints (web app, scheduler) build them the same way.
"""

from functools import lru_cache

from .config import config


def get_config():
    """Return application configuration instance."""
    return config


@lru_cache
def get_db():
    """Return database service instance."""
    from .database import Database

    return Database()


@lru_cache
def get_analyzer():
    """Return the language model analyzer."""
    from .scanner.llm import ClaudeAnalyzer

    return ClaudeAnalyzer()


def get_orchestrator():
    """Return a scan orchestrator wired to the shared database and analyzer."""
    from .scanner.orchestrator import ScanOrchestrator

    return ScanOrchestrator(get_db(), get_analyzer())


def get_learner():
    """Return a rule learner wired to the shared stores."""
    from .scanner.learning import RuleLearner

    db = get_db()
    return RuleLearner(get_analyzer(), db.rules, db.feedback, db.updates)

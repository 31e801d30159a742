"""
Scan pipeline: fetch, parse, deduplicate, enrich, filter, classify and persist.
"""

from .orchestrator import ScanOrchestrator, ScanReport, ScanRequest

__all__ = ["ScanOrchestrator", "ScanReport", "ScanRequest"]

# api/services/service_mapping_errors.py
"""
Error types raised by the service mapping pipeline.

DataSourceUnavailable aborts a whole run. EmptyCandidateSet only affects the
label being classified. PersistenceFailure is raised by a single chunk write
and is always caught by the gateway, which records it and moves on.
"""

from typing import Iterable, Optional


class ServiceMappingError(Exception):
    """Base class for service mapping errors"""


class DataSourceUnavailable(ServiceMappingError):
    """Providers or taxonomy could not be read"""

    def __init__(self, source: str, reason: Optional[str] = None):
        self.source = source
        self.reason = reason
        message = f"Data source '{source}' unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class EmptyCandidateSet(ServiceMappingError):
    """Classifier was given no candidates for a label"""

    def __init__(self, label: str = ""):
        self.label = label
        super().__init__(f"No candidates to classify for label '{label}'")


class PersistenceFailure(ServiceMappingError):
    """An upsert chunk failed to write"""

    def __init__(self, table: str, labels: Iterable[str], reason: str):
        self.table = table
        self.labels = list(labels)
        self.reason = reason
        super().__init__(f"Failed to write {len(self.labels)} row(s) to {table}: {reason}")


class WriteCancelled(ServiceMappingError):
    """A chunk write was abandoned by the gateway before it committed"""

    def __init__(self):
        super().__init__("Write cancelled before commit, transaction rolled back")

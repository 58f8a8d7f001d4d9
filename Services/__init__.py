"""
Core services: feed access, classification, filtering, alerting and inventory.
"""

from Services.Severity import Severity, severity_rank, resolve_severity
from Services.NVDFeedAdapter import NVDFeedAdapter, build_window
from Services.VulnerabilityFilter import FilterCriteria, VulnerabilityItem, filter_records, project
from Services.AlertGenerator import TrackedVulnerability, generate_alerts
from Services.AlertStore import AlertStore, should_notify, format_alert_message
from Services.ApplicationInventory import ApplicationInventory, ApplicationPayload
from Services.ApplicationMatcher import NameSubstringMatcher
from Services.AuthVerifier import AuthResult, TokenAuthVerifier

__all__ = [
    'Severity',
    'severity_rank',
    'resolve_severity',
    'NVDFeedAdapter',
    'build_window',
    'FilterCriteria',
    'VulnerabilityItem',
    'filter_records',
    'project',
    'TrackedVulnerability',
    'generate_alerts',
    'AlertStore',
    'should_notify',
    'format_alert_message',
    'ApplicationInventory',
    'ApplicationPayload',
    'NameSubstringMatcher',
    'AuthResult',
    'TokenAuthVerifier',
]

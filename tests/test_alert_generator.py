from types import SimpleNamespace

import pytest

from Services.AlertGenerator import TrackedVulnerability, alert_id, generate_alert, generate_alerts
from Services.Severity import Severity
from tests.samples import FIXED_NOW

APPS = [
    SimpleNamespace(id="app-1", name="Zoom"),
    SimpleNamespace(id="app-2", name="Slack"),
    SimpleNamespace(id="app-3", name="GitHub"),
]


def test_message_lists_resolved_app_names():
    vuln = TrackedVulnerability(id="CVE-2025-1", cve_id="CVE-2025-1", severity="HIGH",
                                affected_apps=["app-1", "app-2"])
    alert = generate_alert(vuln, APPS, now=FIXED_NOW)

    assert alert.message == "New high vulnerability CVE-2025-1 affects Zoom, Slack"
    assert alert.severity is Severity.HIGH
    assert alert.vulnerability_id == "CVE-2025-1"
    assert alert.app_ids == ["app-1", "app-2"]
    assert alert.read is False
    assert alert.timestamp == FIXED_NOW


def test_unknown_app_ids_are_left_out_of_message():
    vuln = TrackedVulnerability(id="CVE-2", cve_id="CVE-2", severity="CRITICAL", affected_apps=["app-3", "gone"])
    alert = generate_alert(vuln, APPS, now=FIXED_NOW)
    assert alert.message == "New critical vulnerability CVE-2 affects GitHub"
    assert alert.app_ids == ["app-3", "gone"]


def test_affected_apps_behave_as_a_set():
    vuln = TrackedVulnerability(id="CVE-3", cve_id="CVE-3", severity="LOW", affected_apps=["app-1", "app-1"])
    assert vuln.affected_apps == ["app-1"]


def test_empty_affected_apps_is_rejected():
    vuln = TrackedVulnerability(id="CVE-4", cve_id="CVE-4", severity="LOW")
    with pytest.raises(ValueError):
        generate_alert(vuln, APPS, now=FIXED_NOW)


def test_batch_skips_unaffected_and_ids_are_unique():
    vulns = [
        TrackedVulnerability(id="CVE-A", cve_id="CVE-A", severity="HIGH", affected_apps=["app-1"]),
        TrackedVulnerability(id="CVE-B", cve_id="CVE-B", severity="MEDIUM"),
        TrackedVulnerability(id="CVE-A", cve_id="CVE-A", severity="HIGH", affected_apps=["app-2"]),
    ]
    alerts = generate_alerts(vulns, APPS, now=FIXED_NOW)

    assert len(alerts) == 2
    assert len({a.id for a in alerts}) == 2
    # no dedup by vulnerability id at this layer
    assert [a.vulnerability_id for a in alerts] == ["CVE-A", "CVE-A"]


def test_alert_id_combines_vulnerability_time_and_sequence():
    assert alert_id("CVE-1", FIXED_NOW, 3) == f"alert-CVE-1-{int(FIXED_NOW.timestamp() * 1000)}-3"


def test_unknown_severity_string_becomes_low():
    vuln = TrackedVulnerability(id="CVE-5", cve_id="CVE-5", severity="bogus", affected_apps=["app-1"])
    assert generate_alert(vuln, APPS, now=FIXED_NOW).message.startswith("New low vulnerability")

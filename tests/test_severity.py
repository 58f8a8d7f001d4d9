import pytest

from Services.NVDSchema import CVEMetrics
from Services.Severity import Severity, parse_severity, resolve_severity, severity_rank
from tests.samples import cvss_metric


def metrics(**blocks):
    return CVEMetrics.model_validate(blocks)


def test_rank_is_monotonic():
    ranks = [severity_rank(s) for s in ("LOW", "MEDIUM", "HIGH", "CRITICAL")]
    assert ranks == [1, 2, 3, 4]
    assert Severity.LOW.rank < Severity.MEDIUM.rank < Severity.HIGH.rank < Severity.CRITICAL.rank


@pytest.mark.parametrize("value", ["", "NONE", "severe", None, "unknown"])
def test_unrecognised_severity_ranks_low(value):
    assert severity_rank(value) == 1
    assert parse_severity(value) is Severity.LOW


def test_rank_is_case_insensitive():
    assert severity_rank("high") == 3
    assert parse_severity(" critical ") is Severity.CRITICAL


def test_v30_only_resolves_from_v30():
    assert resolve_severity(metrics(cvssMetricV30=[cvss_metric("HIGH", version="3.0")])) is Severity.HIGH


def test_v31_preferred_over_v30():
    m = metrics(
        cvssMetricV31=[cvss_metric("CRITICAL")],
        cvssMetricV30=[cvss_metric("MEDIUM", version="3.0")],
    )
    assert resolve_severity(m) is Severity.CRITICAL


def test_first_entry_of_version_wins():
    m = metrics(cvssMetricV31=[cvss_metric("MEDIUM"), cvss_metric("CRITICAL")])
    assert resolve_severity(m) is Severity.MEDIUM


def test_v2_used_when_no_v3():
    v2 = {
        "source": "nvd@nist.gov",
        "type": "Primary",
        "cvssData": {"version": "2.0", "baseScore": 7.5, "vectorString": "AV:N/AC:L/Au:N/C:P/I:P/A:P"},
        "baseSeverity": "HIGH",
    }
    assert resolve_severity(metrics(cvssMetricV2=[v2])) is Severity.HIGH


def test_no_scoring_data_defaults_to_low():
    assert resolve_severity(None) is Severity.LOW
    assert resolve_severity(metrics()) is Severity.LOW

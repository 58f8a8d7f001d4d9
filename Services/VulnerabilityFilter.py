"""
Rejection/severity filtering and projection to the public vulnerability shape.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from Services.NVDSchema import CVEItem
from Services.Severity import Severity, parse_severity, resolve_severity, select_cvss, severity_rank

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description available"


class CVSSSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_score: Optional[float] = Field(default=None, alias="baseScore")
    base_severity: Optional[str] = Field(default=None, alias="baseSeverity")
    vector_string: Optional[str] = Field(default=None, alias="vectorString")


class VulnerabilityItem(BaseModel):
    """Minimal public shape of a vulnerability record"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    published: Optional[str] = None
    last_modified: Optional[str] = Field(default=None, alias="lastModified")
    vuln_status: Optional[str] = Field(default=None, alias="vulnStatus")
    description: str = NO_DESCRIPTION
    cvss: Optional[CVSSSummary] = None
    references: List[str] = Field(default_factory=list)

    @property
    def severity(self) -> Severity:
        if self.cvss is None:
            return Severity.LOW
        return parse_severity(self.cvss.base_severity)


Record = Union[CVEItem, VulnerabilityItem]


@dataclass(frozen=True)
class FilterCriteria:
    min_severity: str = "LOW"
    exclude_rejected: bool = True


def record_severity(record: Record) -> Severity:
    if isinstance(record, VulnerabilityItem):
        return record.severity
    return resolve_severity(record.metrics)


def is_rejected(record: Record) -> bool:
    return str(record.vuln_status or "").lower() == "rejected"


def keep(record: Record, criteria: FilterCriteria) -> bool:
    """Predicate: not rejected (when excluded) and at least the minimum severity."""
    if criteria.exclude_rejected and is_rejected(record):
        return False
    return record_severity(record).rank >= severity_rank(criteria.min_severity)


def filter_records(records: Iterable[Record], criteria: FilterCriteria) -> List[Record]:
    """Keep matching records, preserving input order."""
    kept = []
    for record in records:
        if keep(record, criteria):
            kept.append(record)
        else:
            logger.debug(f"Filtered out {record.id}")
    return kept


def english_description(record: CVEItem) -> str:
    for desc in record.descriptions:
        if desc.lang == "en" and desc.value:
            return desc.value
    return NO_DESCRIPTION


def project(record: CVEItem) -> VulnerabilityItem:
    """Strip a decoded CVE down to the fields clients consume."""
    entry = select_cvss(record.metrics)
    cvss = None
    if entry is not None:
        cvss = CVSSSummary(
            base_score=entry.cvss_data.base_score,
            base_severity=entry.cvss_data.base_severity or entry.base_severity,
            vector_string=entry.cvss_data.vector_string,
        )

    return VulnerabilityItem(
        id=record.id,
        published=record.published,
        last_modified=record.last_modified,
        vuln_status=record.vuln_status,
        description=english_description(record),
        cvss=cvss,
        references=[ref.url for ref in record.references if ref.url],
    )


def filter_and_project(records: Iterable[CVEItem], criteria: FilterCriteria) -> List[VulnerabilityItem]:
    return [project(record) for record in filter_records(records, criteria)]

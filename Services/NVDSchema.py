"""
Typed decode of NVD CVE API 2.0 responses.

Only the fields the alerting pipeline consumes are modelled; everything else
in the payload is ignored. A payload that does not match this shape raises
pydantic's ValidationError, which the feed adapter turns into FeedParseError.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _NVDModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CVSSData(_NVDModel):
    version: Optional[str] = None
    base_score: Optional[float] = Field(default=None, alias="baseScore")
    # v3.x carries severity here; v2 carries it on the metric entry
    base_severity: Optional[str] = Field(default=None, alias="baseSeverity")
    vector_string: Optional[str] = Field(default=None, alias="vectorString")


class CVSSMetric(_NVDModel):
    source: Optional[str] = None
    type: Optional[str] = None
    cvss_data: CVSSData = Field(alias="cvssData")
    base_severity: Optional[str] = Field(default=None, alias="baseSeverity")


class CVEMetrics(_NVDModel):
    cvssMetricV31: List[CVSSMetric] = Field(default_factory=list)
    cvssMetricV30: List[CVSSMetric] = Field(default_factory=list)
    cvssMetricV2: List[CVSSMetric] = Field(default_factory=list)


class LangString(_NVDModel):
    lang: str
    value: str = ""


class Reference(_NVDModel):
    url: Optional[str] = None
    source: Optional[str] = None


class CVEItem(_NVDModel):
    id: str
    published: Optional[str] = None
    last_modified: Optional[str] = Field(default=None, alias="lastModified")
    vuln_status: Optional[str] = Field(default=None, alias="vulnStatus")
    descriptions: List[LangString] = Field(default_factory=list)
    metrics: Optional[CVEMetrics] = None
    references: List[Reference] = Field(default_factory=list)


class VulnerabilityEntry(_NVDModel):
    cve: CVEItem


class NVDResponse(_NVDModel):
    results_per_page: Optional[int] = Field(default=None, alias="resultsPerPage")
    start_index: Optional[int] = Field(default=None, alias="startIndex")
    total_results: Optional[int] = Field(default=None, alias="totalResults")
    timestamp: Optional[str] = None
    vulnerabilities: List[VulnerabilityEntry] = Field(default_factory=list)

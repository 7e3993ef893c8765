"""NVD/KEV 응답 파서(Parsers for NVD and CISA KEV payloads)."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from common_lib.logger import get_logger
from src.core.data import (
    SOURCE_KEV,
    SOURCE_NVD,
    AffectedProduct,
    KEVEntry,
    Reference,
    Severity,
    VulnerabilityRecord,
)
from src.core.utils.timestamps import parse_timestamp

logger = get_logger(__name__)

NO_DESCRIPTION = "No description available"
NVD_DETAIL_URL = "https://nvd.nist.gov/vuln/detail/{cve_id}"


def severity_from_score(score: Optional[float]) -> Severity:
    """CVSS v3 점수 구간(CVSS v3 qualitative rating)."""
    if score is None:
        return Severity.UNKNOWN
    if score >= 9.0:
        return Severity.CRITICAL
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MEDIUM
    if score >= 0.1:
        return Severity.LOW
    return Severity.NONE


def severity_from_score_v2(score: Optional[float]) -> Severity:
    """CVSS v2 점수 구간(CVSS v2 qualitative rating)."""
    if score is None:
        return Severity.UNKNOWN
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MEDIUM
    return Severity.LOW


def _coerce_severity(value: Any, score: Optional[float]) -> Severity:
    if isinstance(value, str):
        try:
            return Severity(value.upper())
        except ValueError:
            pass
    return severity_from_score(score)


def _first_metric(metrics: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    entries = metrics.get(key)
    if isinstance(entries, list) and entries and isinstance(entries[0], dict):
        return entries[0]
    return None


def extract_cvss(metrics: Dict[str, Any]) -> Tuple[Optional[float], Severity, Optional[str]]:
    """CVSS 추출, 우선순위 v3.1 > v3.0 > v2(Extract score, severity and vector)."""

    for key in ("cvssMetricV31", "cvssMetricV30"):
        metric = _first_metric(metrics, key)
        if metric is not None:
            data = metric.get("cvssData") or {}
            score = data.get("baseScore")
            return score, _coerce_severity(data.get("baseSeverity"), score), data.get("vectorString")

    metric = _first_metric(metrics, "cvssMetricV2")
    if metric is not None:
        data = metric.get("cvssData") or {}
        score = data.get("baseScore")
        return score, severity_from_score_v2(score), data.get("vectorString")

    return None, Severity.UNKNOWN, None


def extract_description(descriptions: Any) -> str:
    if not isinstance(descriptions, list) or not descriptions:
        return NO_DESCRIPTION
    for entry in descriptions:
        if isinstance(entry, dict) and entry.get("lang") == "en" and entry.get("value"):
            return entry["value"]
    first = descriptions[0]
    if isinstance(first, dict) and first.get("value"):
        return first["value"]
    return NO_DESCRIPTION


def extract_affected_products(configurations: Any) -> List[AffectedProduct]:
    """취약 CPE 매칭 추출(Vulnerable cpeMatch criteria with version bounds)."""

    products: List[AffectedProduct] = []
    for config in configurations or []:
        for node in config.get("nodes") or []:
            for match in node.get("cpeMatch") or []:
                if not match.get("vulnerable"):
                    continue
                products.append(
                    AffectedProduct(
                        cpe=match.get("criteria"),
                        version_start=match.get("versionStartIncluding") or match.get("versionStartExcluding"),
                        version_end=match.get("versionEndIncluding") or match.get("versionEndExcluding"),
                    )
                )
    return products


def parse_nvd_item(item: Dict[str, Any], recently_modified: bool = False) -> Optional[VulnerabilityRecord]:
    cve = item.get("cve") if isinstance(item, dict) else None
    if not isinstance(cve, dict) or not cve.get("id"):
        return None

    score, severity, vector = extract_cvss(cve.get("metrics") or {})
    references = [
        Reference(url=ref["url"], source=ref.get("source"), tags=ref.get("tags") or [])
        for ref in cve.get("references") or []
        if isinstance(ref, dict) and ref.get("url")
    ]

    return VulnerabilityRecord(
        id=cve["id"],
        published=parse_timestamp(cve.get("published")),
        last_modified=parse_timestamp(cve.get("lastModified")),
        description=extract_description(cve.get("descriptions")),
        severity=severity,
        cvss_score=score,
        cvss_vector=vector,
        references=references,
        affected_products=extract_affected_products(cve.get("configurations")),
        source=SOURCE_NVD,
        recently_modified=recently_modified,
    )


def parse_nvd_response(data: Any, recently_modified: bool = False) -> List[VulnerabilityRecord]:
    """NVD CVE API 2.0 응답 파싱(Parse an NVD CVE API 2.0 response body).

    Items that are not shaped like CVE entries are skipped with a warning.
    """

    if not isinstance(data, dict) or not isinstance(data.get("vulnerabilities"), list):
        return []

    records: List[VulnerabilityRecord] = []
    for item in data["vulnerabilities"]:
        try:
            record = parse_nvd_item(item, recently_modified=recently_modified)
        except (ValidationError, TypeError, AttributeError) as exc:
            logger.warning("Skipping malformed NVD item")
            logger.debug("NVD item parse failure details", exc_info=exc)
            continue
        if record is not None:
            records.append(record)
    return records


def parse_kev_catalog(data: Any) -> List[KEVEntry]:
    """KEV 카탈로그 파싱(Parse the CISA KEV catalog document)."""

    rows = data.get("vulnerabilities") if isinstance(data, dict) else None
    if not isinstance(rows, list):
        return []

    entries: List[KEVEntry] = []
    for row in rows:
        try:
            entries.append(KEVEntry.model_validate(row))
        except ValidationError:
            logger.debug("Skipping malformed KEV row: %s", row)
    return entries


def kev_entry_to_record(entry: KEVEntry) -> VulnerabilityRecord:
    """KEV 항목을 레코드로 변환(Convert a KEV row into a vulnerability record)."""

    added = parse_timestamp(entry.date_added)
    return VulnerabilityRecord(
        id=entry.cve_id,
        published=added,
        last_modified=added,
        description=entry.short_description or entry.vulnerability_name or NO_DESCRIPTION,
        severity=Severity.HIGH,
        references=[Reference(url=NVD_DETAIL_URL.format(cve_id=entry.cve_id), source="NVD", tags=["Reference"])],
        affected_products=[AffectedProduct(vendor=entry.vendor_project, product=entry.product)],
        source=SOURCE_KEV,
        actively_exploited=True,
        cisa_data=entry.to_cisa_data(),
    )

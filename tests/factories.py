"""Builders for records and upstream payloads used across the tests."""
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, List, Optional

from src.core.data import AffectedProduct, Reference, VulnerabilityRecord


def make_record(
    cve_id: str,
    published: Optional[datetime] = None,
    last_modified: Optional[datetime] = None,
    description: str = "A vulnerability in Acme Router allows remote attackers to do things.",
    cpes: Optional[List[str]] = None,
    references: Optional[List[str]] = None,
    **extra: Any,
) -> VulnerabilityRecord:
    published = published or datetime.now(timezone.utc) - timedelta(hours=1)
    return VulnerabilityRecord(
        id=cve_id,
        published=published,
        last_modified=last_modified or published,
        description=description,
        affected_products=[AffectedProduct(cpe=cpe) for cpe in (cpes or [])],
        references=[Reference(url=url) for url in (references or [])],
        **extra,
    )


def nvd_item(
    cve_id: str,
    published: str = "2024-05-01T15:15:07.247",
    last_modified: str = "2024-05-02T10:00:00.000",
    description: str = "Remote code execution in Acme Router.",
    metrics: Optional[Dict[str, Any]] = None,
    cpes: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Build one entry of an NVD CVE API 2.0 ``vulnerabilities`` array."""
    return {
        "cve": {
            "id": cve_id,
            "published": published,
            "lastModified": last_modified,
            "descriptions": [{"lang": "en", "value": description}],
            "metrics": metrics or {},
            "references": [{"url": f"https://example.com/{cve_id}", "source": "vendor", "tags": ["Vendor Advisory"]}],
            "configurations": [
                {"nodes": [{"cpeMatch": [{"vulnerable": True, "criteria": cpe} for cpe in (cpes or [])]}]}
            ],
        }
    }


def kev_row(
    cve_id: str,
    vendor: str = "Acme",
    product: str = "Router OS",
    date_added: str = "2024-05-01",
    ransomware: str = "Unknown",
) -> Dict[str, Any]:
    """Build one row of the CISA KEV catalog."""
    return {
        "cveID": cve_id,
        "vendorProject": vendor,
        "product": product,
        "vulnerabilityName": f"{vendor} {product} Remote Code Execution",
        "dateAdded": date_added,
        "shortDescription": f"{vendor} {product} contains a remote code execution vulnerability.",
        "requiredAction": "Apply mitigations per vendor instructions.",
        "dueDate": "2024-05-22",
        "knownRansomwareCampaignUse": ransomware,
    }

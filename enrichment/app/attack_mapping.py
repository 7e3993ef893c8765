"""ATT&CK 기법 매핑(Keyword-based MITRE ATT&CK technique mapping)."""
from __future__ import annotations

from typing import List, NamedTuple, Tuple

from src.core.data import AttackTechnique, VulnerabilityRecord

MAX_TECHNIQUES = 3


class TechniquePattern(NamedTuple):
    id: str
    name: str
    patterns: Tuple[str, ...]


# Rows are scanned in order; the first row that matches a technique id wins.
ATTACK_TECHNIQUE_PATTERNS: Tuple[TechniquePattern, ...] = (
    TechniquePattern(
        "T1190",
        "Exploit Public-Facing Application",
        ("remote code execution", "rce", "web application", "public-facing", "internet-facing"),
    ),
    TechniquePattern(
        "T1133",
        "External Remote Services",
        ("vpn", "rdp", "remote desktop", "remote access", "citrix", "pulse secure"),
    ),
    TechniquePattern("T1566", "Phishing", ("phishing", "malicious attachment", "spear-phishing")),
    TechniquePattern(
        "T1078",
        "Valid Accounts",
        ("default credentials", "hardcoded credentials", "credential", "authentication bypass"),
    ),
    TechniquePattern(
        "T1059",
        "Command and Scripting Interpreter",
        ("command injection", "os command", "shell injection", "code injection"),
    ),
    TechniquePattern(
        "T1203",
        "Exploitation for Client Execution",
        ("client-side", "browser", "office", "pdf", "use-after-free", "type confusion"),
    ),
    TechniquePattern(
        "T1505", "Server Software Component", ("webshell", "web shell", "backdoor", "server component")
    ),
    TechniquePattern(
        "T1068",
        "Exploitation for Privilege Escalation",
        ("privilege escalation", "local privilege", "elevation of privilege", "eop"),
    ),
    TechniquePattern(
        "T1211",
        "Exploitation for Defense Evasion",
        ("security bypass", "bypass security", "defense evasion", "antivirus bypass"),
    ),
    TechniquePattern(
        "T1212",
        "Exploitation for Credential Access",
        ("credential theft", "password disclosure", "information disclosure", "sensitive data"),
    ),
    TechniquePattern(
        "T1210",
        "Exploitation of Remote Services",
        ("smb", "lateral movement", "remote service", "network service"),
    ),
    TechniquePattern(
        "T1499", "Endpoint Denial of Service", ("denial of service", "dos", "crash", "resource exhaustion")
    ),
    TechniquePattern("T1486", "Data Encrypted for Impact", ("ransomware", "encryption", "ransom")),
    TechniquePattern("T1565", "Data Manipulation", ("data manipulation", "data corruption", "integrity")),
    TechniquePattern(
        "T1005",
        "Data from Local System",
        (
            "data exfiltration",
            "file read",
            "arbitrary file",
            "path traversal",
            "directory traversal",
            "local file inclusion",
        ),
    ),
    TechniquePattern(
        "T1567", "Exfiltration Over Web Service", ("exfiltration", "data leak", "information leak")
    ),
    TechniquePattern(
        "T1189",
        "Drive-by Compromise",
        ("cross-site scripting", "xss", "cross-site request forgery", "csrf"),
    ),
    TechniquePattern("T1190", "Exploit Public-Facing Application", ("sql injection", "sqli")),
    TechniquePattern(
        "T1059",
        "Command and Scripting Interpreter",
        ("deserialization", "unsafe deserialization", "insecure deserialization"),
    ),
    TechniquePattern(
        "T1203",
        "Exploitation for Client Execution",
        ("buffer overflow", "heap overflow", "stack overflow", "memory corruption", "out-of-bounds"),
    ),
    TechniquePattern(
        "T1190", "Exploit Public-Facing Application", ("server-side request forgery", "ssrf")
    ),
)


def map_to_attack_techniques(description: str | None) -> List[AttackTechnique]:
    """설명 기반 기법 매핑(Map a description to at most three techniques)."""

    if not description:
        return []
    desc = description.lower()
    matched: dict[str, AttackTechnique] = {}
    for row in ATTACK_TECHNIQUE_PATTERNS:
        if row.id in matched:
            continue
        if any(pattern in desc for pattern in row.patterns):
            matched[row.id] = AttackTechnique(id=row.id, name=row.name)
    return list(matched.values())[:MAX_TECHNIQUES]


def enrich_with_attack_techniques(records: List[VulnerabilityRecord]) -> List[VulnerabilityRecord]:
    enriched: List[VulnerabilityRecord] = []
    for record in records:
        techniques = map_to_attack_techniques(record.description)
        if techniques:
            enriched.append(record.model_copy(update={"attack_techniques": techniques}))
        else:
            enriched.append(record)
    return enriched

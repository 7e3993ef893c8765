"""위협 행위자 귀속(Threat-actor attribution from KEV ransomware flags and Mandiant references)."""
from __future__ import annotations

from typing import List, Tuple

from src.core.data import ThreatActor, VulnerabilityRecord

SOURCE_MANDIANT = "Mandiant"
SOURCE_CISA = "CISA KEV"

MANDIANT_ACTOR_PATTERNS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("apt29", "cozy bear", "nobelium", "midnight blizzard"), "APT29 / NOBELIUM"),
    (("apt28", "fancy bear", "sofacy", "forest blizzard"), "APT28 / Fancy Bear"),
    (("sandworm", "apt44", "seashell blizzard"), "Sandworm / APT44"),
    (("lazarus", "apt38", "hidden cobra"), "Lazarus Group"),
    (("apt41", "double dragon", "barium"), "APT41"),
    (("unc2452", "unc3004", "unc3944", "unc5221"), "Mandiant UNC Cluster"),
    (("cl0p", "clop"), "Cl0p Ransomware"),
    (("lockbit",), "LockBit Ransomware"),
    (("blackcat", "alphv"), "ALPHV / BlackCat"),
)

GENERIC_MANDIANT_ACTOR = "Mandiant-linked activity"
KNOWN_RANSOMWARE_ACTOR = "Known ransomware campaign"


def find_mandiant_actors(record: VulnerabilityRecord) -> List[ThreatActor]:
    urls = [ref.url or "" for ref in record.references]
    text = " ".join([record.description or "", *urls]).lower()

    # alias matching only applies once Mandiant is actually referenced
    has_signal = "mandiant" in text or any("mandiant.com" in url.lower() for url in urls)
    if not has_signal:
        return []

    actors = [
        ThreatActor(name=name, source=SOURCE_MANDIANT)
        for aliases, name in MANDIANT_ACTOR_PATTERNS
        if any(alias in text for alias in aliases)
    ]
    if not actors:
        actors.append(ThreatActor(name=GENERIC_MANDIANT_ACTOR, source=SOURCE_MANDIANT))
    return actors


def find_cisa_actors(record: VulnerabilityRecord) -> List[ThreatActor]:
    if record.cisa_data is None or record.cisa_data.known_ransomware_campaign_use != "Known":
        return []
    return [ThreatActor(name=KNOWN_RANSOMWARE_ACTOR, source=SOURCE_CISA)]


def enrich_with_threat_actors(records: List[VulnerabilityRecord]) -> List[VulnerabilityRecord]:
    enriched: List[VulnerabilityRecord] = []
    for record in records:
        combined = find_cisa_actors(record) + find_mandiant_actors(record)
        if not combined:
            enriched.append(record)
            continue
        unique = {(actor.name, actor.source): actor for actor in combined}
        enriched.append(record.model_copy(update={"threat_actors": list(unique.values())}))
    return enriched

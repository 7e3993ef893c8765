"""자산별 오탐 필터(Per-asset false-positive filters).

Each validator is a pure function of the lowercased description and the
record's CPE strings. Broad keyword searches (``cisco``, ``microsoft``,
``npm``) pull in plenty of unrelated records; these filters decide which of
them really concern the asset.
"""
from __future__ import annotations

from typing import Callable, Dict, Iterable, List

from src.core.data import VulnerabilityRecord

Validator = Callable[[str, List[str]], bool]


def _cpe_has(cpes: List[str], *needles: str) -> bool:
    return any(needle in cpe for cpe in cpes for needle in needles)


def _mentions(desc: str, terms: Iterable[str]) -> bool:
    return any(term in desc for term in terms)


def cisco(desc: str, cpes: List[str]) -> bool:
    context = _mentions(
        desc,
        (
            "cisco",
            "ios-xe",
            "ios-xr",
            "identity services engine",
            "unified communications manager",
            "unified cm",
            "cucm",
        ),
    )
    apple_ios = _mentions(desc, ("apple ios", "iphone", "ipad", "apple tv", "watchos")) or (
        "ios" in desc and "apple" in desc and "cisco" not in desc
    )
    other_vendor = _mentions(
        desc,
        ("juniper", "arista", "huawei", "dell networking", "hp procurve", "fortinet", "palo alto", "f5 big-ip"),
    )
    return (
        (_cpe_has(cpes, ":cisco:") or context)
        and not apple_ios
        and not _cpe_has(cpes, ":apple:")
        and not other_vendor
    )


def microsoft(desc: str, cpes: List[str]) -> bool:
    # linux/macos stay allowed: Edge, .NET and SQL Server ship cross-platform
    context = _mentions(
        desc,
        (
            "microsoft",
            "windows",
            "office 365",
            "exchange server",
            "sharepoint",
            "sql server",
            "azure",
            "visual studio",
            "edge chromium",
            "teams",
        ),
    )
    excluded = _mentions(desc, ("libreoffice", "openoffice", "google docs", "google workspace"))
    return (_cpe_has(cpes, ":microsoft:") or context) and not excluded


def hpe(desc: str, cpes: List[str]) -> bool:
    context = _mentions(
        desc,
        (
            "hpe",
            "hewlett packard enterprise",
            "proliant",
            "nimble storage",
            "alletra",
            "integrated lights-out",
            "integrated lights out",
            "ilo 4",
            "ilo 5",
            "ilo 6",
            "oneview",
            "storeonce",
        ),
    )
    excluded = _mentions(
        desc,
        (
            "mongodb",
            "mysql",
            "postgresql",
            "oracle database",
            "sql server",
            "redis",
            "cassandra",
            "elasticsearch",
            "aws",
            "azure storage",
            "google cloud",
            "s3 bucket",
            "minio",
            "ceph",
            "dell",
            "lenovo",
            "supermicro",
            "cisco ucs",
        ),
    )
    has_cpe = _cpe_has(cpes, ":hpe:", ":hp:", ":hewlett_packard_enterprise:")
    return (has_cpe or context) and not excluded


def watchguard(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("watchguard", "firebox", "fireware"))
    excluded = _mentions(
        desc,
        (
            "palo alto",
            "fortinet",
            "fortigate",
            "checkpoint",
            "sophos",
            "cisco asa",
            "juniper",
            "sonicwall",
            "pfsense",
            "opnsense",
        ),
    )
    return (_cpe_has(cpes, ":watchguard:") or context) and not excluded


def zoom(desc: str, cpes: List[str]) -> bool:
    product = any(
        ":zoom:" in cpe
        and any(part in cpe for part in (":zoom_", ":meetings", ":workplace", ":rooms", ":zoom:zoom:"))
        for cpe in cpes
    )
    context = _mentions(
        desc,
        ("zoom video", "zoom communications", "zoom client", "zoom meeting", "zoom workplace", "zoom rooms"),
    ) or ("zoom" in desc and _mentions(desc, ("video conferencing", "webinar")))
    return product or context


def tripplite_ups(desc: str, cpes: List[str]) -> bool:
    product = _cpe_has(cpes, ":tripp_lite:", ":tripplite:", ":tripp-lite:")
    context = _mentions(desc, ("tripp lite", "tripplite", "tripp-lite")) or (
        "tripp" in desc and _mentions(desc, ("ups", "power", "pdu"))
    )
    generic_power = _mentions(desc, ("ups", "power")) and "tripp" not in desc and not product
    return (product or context) and not generic_power


def crestron(desc: str, cpes: List[str]) -> bool:
    # "crestron" collides with git hosting tools in some advisories
    excluded = _mentions(
        desc, ("gogs", "gitea", "gitlab", "github", "git server", "forgejo", "sourcehut", "bitbucket")
    )
    return _cpe_has(cpes, ":crestron:") or ("crestron" in desc and not excluded)


def oracle_database(desc: str, cpes: List[str]) -> bool:
    has_cpe = any(
        ":oracle:database" in cpe or (":oracle:" in cpe and ":oracle:mysql" not in cpe) for cpe in cpes
    )
    context = _mentions(desc, ("oracle database", "oracle db", "oracle oda", "oracle appliance")) or (
        "oracle" in desc and _mentions(desc, ("database", "rdbms"))
    )
    excluded = _mentions(
        desc,
        (
            "mongodb",
            "mysql",
            "postgresql",
            "sql server",
            "mariadb",
            "redis",
            "cassandra",
            "elasticsearch",
            "dynamodb",
            "couchdb",
            "oracle java",
            "oracle virtualbox",
            "oracle linux",
        ),
    )
    return (has_cpe or context) and not excluded


def solarwinds(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("solarwinds", "orion platform"))
    excluded = _mentions(
        desc,
        (
            "node.js",
            "nodejs",
            "node package",
            "npm registry",
            "npm install",
            "package.json",
            "javascript",
            "npm audit",
            "npmjs.org",
        ),
    )
    # "npm" is also SolarWinds Network Performance Monitor, but only with the vendor named
    node_npm = "npm" in desc and "solarwinds" not in desc
    return (_cpe_has(cpes, ":solarwinds:") or context) and not excluded and not node_npm


def connectwise(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("connectwise", "screenconnect"))
    excluded = _mentions(
        desc,
        ("ansible", "puppet", "chef", "terraform", "jenkins", "github actions", "gitlab ci", "azure devops"),
    )
    return (_cpe_has(cpes, ":connectwise:") or context) and not excluded


def veeam(desc: str, cpes: List[str]) -> bool:
    excluded = _mentions(
        desc, ("acronis", "commvault", "veritas", "rubrik", "cohesity", "dell emc", "netbackup")
    )
    return (_cpe_has(cpes, ":veeam:") or "veeam" in desc) and not excluded


def zerto(desc: str, cpes: List[str]) -> bool:
    excluded = _mentions(
        desc, ("veeam", "acronis", "commvault", "vmware srm", "aws disaster", "azure site recovery")
    )
    return (_cpe_has(cpes, ":zerto:") or "zerto" in desc) and not excluded


def bitdefender(desc: str, cpes: List[str]) -> bool:
    excluded = _mentions(
        desc,
        (
            "norton",
            "mcafee",
            "kaspersky",
            "avast",
            "avg",
            "eset",
            "trend micro",
            "sophos",
            "crowdstrike",
            "sentinelone",
        ),
    )
    context = _mentions(desc, ("bitdefender", "gravityzone"))
    return (_cpe_has(cpes, ":bitdefender:") or context) and not excluded


def google_chrome(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("google chrome", "chrome browser")) or ("chrome" in desc and "google" in desc)
    excluded = _mentions(desc, ("electron", "chromium embedded", "cef", "edge", "brave", "vivaldi", "opera"))
    return (_cpe_has(cpes, ":google:chrome") or context) and not excluded


def firefox(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("mozilla firefox", "firefox browser")) or (
        "firefox" in desc and "mozilla" in desc
    )
    excluded = _mentions(desc, ("chrome", "edge", "safari", "opera", "brave", "vivaldi"))
    return (_cpe_has(cpes, ":mozilla:firefox") or context) and not excluded


def ubuntu(desc: str, cpes: List[str]) -> bool:
    excluded = any(term in desc and "ubuntu" not in desc for term in ("mint", "kubuntu", "lubuntu"))
    return (_cpe_has(cpes, ":canonical:") or "ubuntu" in desc) and not excluded


def rhel(desc: str, cpes: List[str]) -> bool:
    has_cpe = _cpe_has(cpes, ":redhat:enterprise_linux")
    context = _mentions(desc, ("red hat enterprise linux", "rhel"))
    excluded = _mentions(desc, ("fedora", "centos stream")) and not context and not has_cpe
    return (has_cpe or context) and not excluded


def debian(desc: str, cpes: List[str]) -> bool:
    return _cpe_has(cpes, ":debian:") or "debian" in desc


def aws(desc: str, cpes: List[str]) -> bool:
    context = _mentions(
        desc, ("amazon web services", "aws", "amazon linux", "amazon ec2", "amazon s3")
    )
    excluded = _mentions(desc, ("amazon kindle", "amazon fire", "amazon alexa", "amazon ring"))
    return (_cpe_has(cpes, ":amazon:") or context) and not excluded


def azure_cloud(desc: str, cpes: List[str]) -> bool:
    context = "azure" in desc and _mentions(desc, ("microsoft", "cloud", "active directory", "devops"))
    return _cpe_has(cpes, ":microsoft:azure") or context


def google_cloud(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("google cloud", "gcp", "cloud sdk"))
    return _cpe_has(cpes, ":google:cloud_platform", ":google:cloud_sdk") or context


def fortinet(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("fortinet", "fortigate", "fortios", "fortimanager", "fortianalyzer"))
    excluded = _mentions(desc, ("watchguard", "palo alto", "checkpoint", "cisco asa"))
    return (_cpe_has(cpes, ":fortinet:") or context) and not excluded


def paloalto(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("palo alto", "pan-os", "cortex xdr", "globalprotect", "panorama"))
    excluded = _mentions(desc, ("fortinet", "watchguard", "checkpoint", "cisco asa"))
    return (_cpe_has(cpes, ":paloaltonetworks:") or context) and not excluded


def juniper(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("juniper", "junos"))
    excluded = _mentions(desc, ("cisco", "fortinet", "palo alto", "arista"))
    return (_cpe_has(cpes, ":juniper:") or context) and not excluded


def docker(desc: str, cpes: List[str]) -> bool:
    context = _mentions(desc, ("docker engine", "docker desktop")) or (
        "docker" in desc and _mentions(desc, ("container", "daemon", "moby"))
    )
    return _cpe_has(cpes, ":docker:") or context


def kubernetes(desc: str, cpes: List[str]) -> bool:
    has_cpe = _cpe_has(cpes, ":kubernetes:")
    context = _mentions(desc, ("kubernetes", "k8s"))
    excluded = _mentions(desc, ("openshift", "rancher", "docker swarm")) and not context and not has_cpe
    return (has_cpe or context) and not excluded


VALIDATORS: Dict[str, Validator] = {
    "cisco": cisco,
    "microsoft": microsoft,
    "hpe": hpe,
    "watchguard": watchguard,
    "zoom": zoom,
    "tripplite-ups": tripplite_ups,
    "crestron": crestron,
    "oracle-database": oracle_database,
    "solarwinds": solarwinds,
    "connectwise": connectwise,
    "veeam": veeam,
    "zerto": zerto,
    "bitdefender": bitdefender,
    "google-chrome": google_chrome,
    "firefox": firefox,
    "ubuntu": ubuntu,
    "rhel": rhel,
    "debian": debian,
    "aws": aws,
    "azure-cloud": azure_cloud,
    "google-cloud": google_cloud,
    "fortinet": fortinet,
    "paloalto": paloalto,
    "juniper": juniper,
    "docker": docker,
    "kubernetes": kubernetes,
}


def record_cpes(record: VulnerabilityRecord) -> List[str]:
    return [product.cpe for product in record.affected_products if product.cpe]


def validate_for_asset(record: VulnerabilityRecord, asset_id: str) -> bool:
    """자산 필터 적용(Apply the asset's filter; assets without one accept everything)."""

    validator = VALIDATORS.get(asset_id)
    if validator is None:
        return True
    return validator((record.description or "").lower(), record_cpes(record))

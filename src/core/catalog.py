"""Monitored asset catalog.

Order matters: the batch scheduler slices this list by position, so new
assets should be appended.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from src.core.data.asset import Asset
from src.core.errors import DataValidationError


def _asset(
    id: str,
    name: str,
    vendor: str,
    cpe_vendor: str,
    cpe_products: List[str],
    keywords: List[str],
    additional_cpe_vendors: Optional[List[str]] = None,
) -> Asset:
    return Asset(
        id=id,
        name=name,
        vendor=vendor,
        cpe_vendor=cpe_vendor,
        cpe_products=cpe_products,
        keywords=keywords,
        additional_cpe_vendors=additional_cpe_vendors or [],
    )


ASSETS: List[Asset] = [
    # "cisco" alone also catches entries that have no CPE data yet
    _asset(
        "cisco",
        "Cisco",
        "Cisco",
        "cisco",
        ["ios", "ios_xe", "ios_xr", "identity_services_engine", "unified_communications_manager"],
        [
            "cisco",
            "cisco ios",
            "cisco ios xe",
            "cisco ios xr",
            "cisco ise",
            "cisco identity services engine",
            "cisco unified communications manager",
            "cisco unified cm",
            "cisco cucm",
        ],
    ),
    _asset(
        "microsoft",
        "Microsoft",
        "Microsoft",
        "microsoft",
        [
            "windows_10",
            "windows_11",
            "windows_server_2012",
            "windows_server_2016",
            "windows_server_2019",
            "windows_server_2022",
            "exchange_server",
            "sharepoint_server",
            "sql_server",
            "365_apps",
            "office",
            "visual_studio",
            "teams",
            "edge_chromium",
            "azure",
        ],
        [
            "microsoft",
            "microsoft windows",
            "windows server",
            "microsoft exchange",
            "microsoft sharepoint",
            "microsoft sql server",
            "microsoft 365",
            "office 365",
            "microsoft teams",
            "microsoft edge",
            "visual studio",
            "microsoft azure",
        ],
    ),
    _asset(
        "hpe",
        "HPE",
        "Hewlett Packard Enterprise",
        "hpe",
        [
            "proliant",
            "proliant_dl380",
            "proliant_dl360",
            "proliant_ml350",
            "nimble_storage",
            "alletra",
            "integrated_lights-out",
            "ilo",
            "oneview",
            "storeonce",
        ],
        [
            "hewlett packard enterprise",
            "hpe proliant",
            "hpe nimble",
            "hpe alletra",
            "hpe ilo",
            "integrated lights-out",
            "hpe oneview",
            "hpe storeonce",
        ],
        additional_cpe_vendors=["hp", "hewlett_packard_enterprise"],
    ),
    _asset(
        "watchguard",
        "WatchGuard",
        "WatchGuard",
        "watchguard",
        ["firebox", "fireware", "mobile_vpn", "authpoint"],
        ["watchguard", "firebox", "fireware", "watchguard vpn"],
    ),
    _asset(
        "tripplite-ups",
        "Tripp Lite UPS",
        "Tripp Lite",
        "tripp_lite",
        ["smartpro", "smart_online", "smartonline", "poweralert"],
        ["tripp lite"],
    ),
    _asset(
        "solarwinds",
        "SolarWinds",
        "SolarWinds",
        "solarwinds",
        ["orion", "orion_platform", "network_performance_monitor", "server_and_application_monitor"],
        ["solarwinds", "orion platform", "solarwinds npm", "solarwinds sam"],
    ),
    _asset(
        "connectwise",
        "ConnectWise",
        "ConnectWise",
        "connectwise",
        ["screenconnect", "automate", "control", "manage"],
        ["connectwise", "screenconnect", "connectwise automate", "connectwise manage"],
    ),
    _asset(
        "oracle-database",
        "Oracle Database",
        "Oracle",
        "oracle",
        ["database", "database_server", "enterprise_manager"],
        ["oracle database", "oracle db", "oracle enterprise manager"],
    ),
    _asset(
        "veeam",
        "Veeam",
        "Veeam",
        "veeam",
        ["backup_and_replication", "veeam_backup_\\&_replication", "one", "agent"],
        ["veeam"],
    ),
    _asset(
        "zerto",
        "Zerto",
        "Zerto",
        "zerto",
        ["virtual_replication", "zerto"],
        ["zerto", "zerto virtual replication"],
    ),
    _asset(
        "bitdefender",
        "BitDefender",
        "BitDefender",
        "bitdefender",
        ["gravityzone", "endpoint_security", "total_security"],
        ["bitdefender", "gravityzone"],
    ),
    _asset(
        "zoom",
        "Zoom",
        "Zoom Video Communications",
        "zoom",
        ["meetings", "zoom", "zoom_client", "workplace", "rooms"],
        ["zoom video communications", "zoom meetings", "zoom client"],
    ),
    _asset(
        "google-chrome",
        "Google Chrome",
        "Google",
        "google",
        ["chrome"],
        ["google chrome", "chrome browser"],
    ),
    _asset(
        "firefox",
        "Firefox",
        "Mozilla",
        "mozilla",
        ["firefox"],
        ["mozilla firefox", "firefox browser"],
    ),
    _asset(
        "crestron",
        "Crestron",
        "Crestron",
        "crestron",
        ["crestron", "dm", "nvx", "flex"],
        ["crestron", "crestron av", "crestron control"],
    ),
    _asset("ubuntu", "Ubuntu", "Canonical", "canonical", ["ubuntu_linux"], ["ubuntu", "canonical ubuntu"]),
    _asset(
        "rhel",
        "RHEL",
        "Red Hat",
        "redhat",
        ["enterprise_linux", "enterprise_linux_server"],
        ["red hat enterprise linux", "rhel"],
    ),
    _asset("debian", "Debian", "Debian", "debian", ["debian_linux"], ["debian linux", "debian"]),
    _asset(
        "aws",
        "AWS",
        "Amazon",
        "amazon",
        ["aws", "linux", "ec2", "s3"],
        ["amazon web services", "aws", "amazon linux"],
    ),
    _asset(
        "azure-cloud",
        "Azure Cloud",
        "Microsoft",
        "microsoft",
        ["azure", "azure_active_directory", "azure_devops_server"],
        ["microsoft azure", "azure cloud", "azure active directory", "azure devops"],
    ),
    _asset(
        "google-cloud",
        "Google Cloud",
        "Google",
        "google",
        ["cloud_platform", "cloud_sdk"],
        ["google cloud platform", "gcp", "google cloud sdk"],
    ),
    _asset(
        "fortinet",
        "Fortinet",
        "Fortinet",
        "fortinet",
        ["fortigate", "fortios", "fortimanager", "fortianalyzer"],
        ["fortinet", "fortigate", "fortios", "fortimanager", "fortianalyzer"],
    ),
    _asset(
        "paloalto",
        "Palo Alto Networks",
        "Palo Alto Networks",
        "paloaltonetworks",
        ["pan-os", "cortex_xdr", "globalprotect", "panorama"],
        ["palo alto networks", "pan-os", "cortex xdr", "globalprotect", "panorama"],
    ),
    _asset(
        "juniper",
        "Juniper",
        "Juniper Networks",
        "juniper",
        ["junos", "junos_os", "srx", "mx"],
        ["juniper networks", "junos", "juniper srx", "juniper mx"],
    ),
    _asset(
        "docker",
        "Docker",
        "Docker",
        "docker",
        ["docker", "docker_engine", "docker_desktop"],
        ["docker", "docker engine", "docker desktop"],
    ),
    _asset("kubernetes", "Kubernetes", "Kubernetes", "kubernetes", ["kubernetes"], ["kubernetes", "k8s"]),
]

ASSETS_BY_ID: Dict[str, Asset] = {asset.id: asset for asset in ASSETS}


def get_asset(asset_id: str) -> Asset:
    """Look up a catalog entry by id.

    Raises:
        DataValidationError: if the id is not in the catalog
    """
    try:
        return ASSETS_BY_ID[asset_id]
    except KeyError as exc:
        raise DataValidationError("asset_id", asset_id, "not in the asset catalog") from exc

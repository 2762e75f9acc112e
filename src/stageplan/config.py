from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "STAGEPLAN_"}

    # Site handle of the submit host
    submit_site: str = "local"

    # Output staging
    output_site: Optional[str] = None
    staging_sites: dict[str, str] = {}  # execution site -> staging site

    # Output layout on the output site: flat, or hashed with bounded fan-out
    deep_storage_structure: bool = False
    output_fanout: int = 256

    # Symlink inputs that already sit on the staging site
    use_symlinks: bool = False
    worker_node_execution: bool = False

    # SRM service URL -> mount point, keyed by site:
    #   {"ligo-cit": {"service_url": "srm://se:8443/srm/v2/server?SFN=/mnt/hadoop",
    #                 "mount_point": "/mnt/hadoop"}}
    srm: dict[str, dict[str, str]] = {}

    # Replica selection
    replica_selector: str = "default"
    preferred_sites: dict[str, list[str]] = {}  # target site -> source sites, best first
    ignored_sites: list[str] = []

    # Advisory transfer placement answered by the bundled refiner
    transfer_location_preference: Optional[Literal["local", "remote"]] = None
    remote_transfer_sites: dict[str, list[str]] = {}  # transfer job type -> sites ("*" = all)

    # Directory add-ons appended to scratch and storage mount points
    relative_work_dir: str = ""
    relative_storage_dir: str = ""

    # Rucio
    rucio_url: str = "https://cms-rucio.cern.ch"
    rucio_account: str = "stageplan"
    rucio_scope: str = "cms"
    # RSE name -> site handle; overrides the suffix rules below
    rucio_site_map: dict[str, str] = {}
    rucio_strip_rse_suffixes: list[str] = ["Disk", "Test", "Temp"]
    rucio_skip_rse_suffixes: list[str] = ["Tape"]

    # X.509 certificates
    cert_file: Optional[str] = None
    key_file: Optional[str] = None

    # Logging
    log_level: str = "INFO"

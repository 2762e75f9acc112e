from .enums import (
    DirectoryType,
    FileType,
    JobKind,
    Operation,
    TransferJobType,
    TransferMode,
)
from .replica import ReplicaEntry, ReplicaLocation
from .site import Directory, FileServer, SiteEntry, SiteStore, load_site_store

__all__ = [
    "Directory",
    "DirectoryType",
    "FileServer",
    "FileType",
    "JobKind",
    "Operation",
    "ReplicaEntry",
    "ReplicaLocation",
    "SiteEntry",
    "SiteStore",
    "TransferJobType",
    "TransferMode",
    "load_site_store",
]

import json
import os
from typing import Optional

from pydantic import BaseModel

from .enums import DirectoryType, Operation


class FileServer(BaseModel):
    url_prefix: str
    mount_point: str = "/"
    operation: Operation = Operation.ALL

    @property
    def url(self) -> str:
        return self.url_prefix + self.mount_point


class Directory(BaseModel):
    type: DirectoryType
    internal_mount_point: str = ""
    file_servers: list[FileServer] = []

    def servers_for(self, operation: Operation) -> list[FileServer]:
        return [fs for fs in self.file_servers if fs.operation == operation]

    def select_file_server(self, operation: Operation) -> Optional[FileServer]:
        """First server for the exact operation, falling back to an ``all`` server."""
        servers = self.servers_for(operation)
        if not servers and operation != Operation.ALL:
            servers = self.servers_for(Operation.ALL)
        return servers[0] if servers else None

    def has_server_for_get(self) -> bool:
        return any(self.servers_for(op) for op in Operation.for_get())

    def has_server_for_put(self) -> bool:
        return any(self.servers_for(op) for op in Operation.for_put())


class SiteEntry(BaseModel):
    name: str
    directories: list[Directory] = []

    def directory(self, dir_type: DirectoryType) -> Optional[Directory]:
        for d in self.directories:
            if d.type == dir_type:
                return d
        return None

    @property
    def scratch_directory(self) -> Optional[Directory]:
        return self.directory(DirectoryType.SHARED_SCRATCH)

    @property
    def storage_directory(self) -> Optional[Directory]:
        return self.directory(DirectoryType.SHARED_STORAGE)

    def select_scratch_server(self, operation: Operation) -> Optional[FileServer]:
        scratch = self.scratch_directory
        return scratch.select_file_server(operation) if scratch else None


class SiteStore(BaseModel):
    """Storage topology for every site known to a planning run.

    ``relative_work_dir`` is the per-run directory appended to a scratch
    server's mount point; ``relative_storage_dir`` is the add-on under which
    outputs land on the output site.
    """

    sites: dict[str, SiteEntry] = {}
    relative_work_dir: str = ""
    relative_storage_dir: str = ""

    def lookup(self, site: str) -> Optional[SiteEntry]:
        return self.sites.get(site)

    def external_work_directory(self, server: FileServer) -> str:
        return _join(server.mount_point, self.relative_work_dir)

    def internal_work_directory(self, site: str, remote_dir: Optional[str] = None) -> Optional[str]:
        if remote_dir:
            return remote_dir
        entry = self.lookup(site)
        scratch = entry.scratch_directory if entry else None
        if scratch is None:
            return None
        return _join(scratch.internal_mount_point, self.relative_work_dir)


def _join(base: str, addon: str) -> str:
    if not addon:
        return base.rstrip("/") or "/"
    return os.path.join(base, addon.strip("/"))


def load_site_store(path: str, relative_work_dir: str = "", relative_storage_dir: str = "") -> SiteStore:
    """Load a site store from a JSON file.

    Accepts either ``{"sites": [...]}`` or a bare list of site entries.
    """
    with open(path) as f:
        data = json.load(f)
    entries = data.get("sites", []) if isinstance(data, dict) else data
    sites = {}
    for raw in entries:
        entry = SiteEntry.model_validate(raw)
        sites[entry.name] = entry
    return SiteStore(
        sites=sites,
        relative_work_dir=relative_work_dir,
        relative_storage_dir=relative_storage_dir,
    )

"""URL Builder: locators from site storage topology.

Scratch locators are ``url_prefix + external work dir + "/" + lfn`` built
from the shared-scratch directory; output locators are ``server.url + "/" +
relative path`` built from the output site's shared-storage directory, the
relative path coming from the output layout. Any role/operation combination
without a file server is fatal.
"""

from __future__ import annotations

import logging
from typing import Optional

from stageplan.adapters.base import TransferRefiner
from stageplan.core.errors import (
    MissingFileServerError,
    MissingSiteError,
    missing_server_msg,
    site_not_found_msg,
)
from stageplan.core.jobs import SiteURL
from stageplan.core.locator import SRMMapping, is_file_url, to_file_url, to_local_replica
from stageplan.models.enums import Operation, TransferJobType
from stageplan.models.replica import ReplicaEntry
from stageplan.models.site import Directory, FileServer, SiteEntry, SiteStore

logger = logging.getLogger(__name__)


class URLBuilder:
    def __init__(
        self,
        site_store: SiteStore,
        refiner: TransferRefiner,
        submit_site: str = "local",
        srm_map: Optional[dict[str, SRMMapping]] = None,
    ):
        self.site_store = site_store
        self.refiner = refiner
        self.submit_site = submit_site
        self.srm_map = srm_map or {}

    # ── Sites and servers ────────────────────────────────────

    def site(self, handle: str) -> SiteEntry:
        entry = self.site_store.lookup(handle)
        if entry is None:
            msg = site_not_found_msg(handle)
            logger.error(msg)
            raise MissingSiteError(msg)
        return entry

    def scratch_server(self, site: str, operation: Operation, job_name: Optional[str] = None) -> FileServer:
        server = self.site(site).select_scratch_server(operation)
        if server is None:
            raise MissingFileServerError(
                missing_server_msg(job_name, "shared-scratch", operation.value, site)
            )
        return server

    def storage_directory(self, site: str) -> Directory:
        directory = self.site(site).storage_directory
        if directory is None:
            raise MissingFileServerError(f"No storage directory specified for site {site}")
        return directory

    # ── Scratch (staging) locators ───────────────────────────

    def scratch_directory_url(self, site: str, operation: Operation, job_name: Optional[str] = None) -> str:
        server = self.scratch_server(site, operation, job_name)
        return server.url_prefix + self.site_store.external_work_directory(server)

    def staging_url(
        self, site: str, lfn: str, operation: Operation = Operation.PUT, job_name: Optional[str] = None
    ) -> str:
        return f"{self.scratch_directory_url(site, operation, job_name)}/{lfn}"

    def internal_directory_url(self, site: str, remote_dir: Optional[str] = None) -> str:
        """``file://`` URL of the site's work directory as seen on the site itself."""
        path = self.site_store.internal_work_directory(site, remote_dir)
        if path is None:
            self.site(site)
            raise MissingFileServerError(f"Unable to determine the scratch directory for site {site}")
        return to_file_url(path)

    def scratch_source_urls(self, site: str, lfn: str) -> list[str]:
        """Locators of ``lfn`` for every read-capable scratch server, in preference order."""
        scratch = self.site(site).scratch_directory
        if scratch is None:
            raise MissingFileServerError(f"Unable to determine the scratch directory for site {site}")
        urls = []
        for op in Operation.for_get():
            for server in scratch.servers_for(op):
                urls.append(f"{server.url_prefix}{self.site_store.external_work_directory(server)}/{lfn}")
        return urls

    # ── Output site locators ─────────────────────────────────

    @staticmethod
    def output_url(server: FileServer, relative: str) -> str:
        separator = "" if relative.startswith("/") else "/"
        return f"{server.url}{separator}{relative}"

    def output_url_for(self, directory: Directory, operation: Operation, relative: str, site: str) -> str:
        server = directory.select_file_server(operation)
        if server is None:
            raise MissingFileServerError(
                missing_server_msg(None, "shared-storage", operation.value, site)
            )
        return self.output_url(server, relative)

    def output_destinations(
        self, directory: Directory, site: str, relative: str, staging_url: str
    ) -> Optional[list[SiteURL]]:
        """Every write-capable endpoint on the output site for ``relative``.

        Returns None as soon as one candidate is textually identical
        (ignoring case) to ``staging_url``: the file is already in place.
        """
        if not directory.has_server_for_put():
            raise MissingFileServerError(
                f"No file servers specified for PUT operation on shared storage for site {site}"
            )
        destinations = []
        for op in Operation.for_put():
            for server in directory.servers_for(op):
                url = self.output_url(server, relative)
                if url.lower() == staging_url.lower():
                    return None
                destinations.append(SiteURL(site, url))
        return destinations

    def registration_url(self, directory: Directory, site: str, relative: str) -> str:
        """Locator from the first read-capable storage server."""
        if not directory.has_server_for_get():
            raise MissingFileServerError(
                f"No file servers specified for GET operation on shared storage for site {site}"
            )
        server = next(s for op in Operation.for_get() for s in directory.servers_for(op))
        return self.output_url(server, relative)

    # ── Placement and rewriting ──────────────────────────────

    def run_transfer_on_local_site(
        self, site: str, destination_url: Optional[str], job_type: TransferJobType
    ) -> bool:
        """Whether the transfer job for ``site`` runs on the submit site."""
        if site == self.submit_site:
            return True
        if self.refiner.prefers_transfer_location():
            return self.refiner.prefers_local_transfers(job_type)
        if self.refiner.run_transfer_remotely(site, job_type):
            return False
        if is_file_url(destination_url):
            return False
        return True

    def local_replica(self, entry: ReplicaEntry) -> ReplicaEntry:
        return to_local_replica(entry, self.srm_map)

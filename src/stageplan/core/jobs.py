"""Transient planning objects: jobs, logical files and transfer descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

from stageplan.models.enums import FileType, JobKind, TransferMode


class SiteURL(NamedTuple):
    site: str
    url: str


@dataclass(eq=False)
class LogicalFile:
    """A file known by its logical name.

    Two instances with the same ``lfn`` are the same file, whichever job
    lists them. A file carrying both ``source`` and ``destination`` is
    pre-resolved and bypasses the replica catalog.
    """
    lfn: str
    size: int = 0
    file_type: FileType = FileType.DATA
    transfer_mode: TransferMode = TransferMode.ALWAYS
    register: bool = True
    optional: bool = False
    source: Optional[SiteURL] = None
    destination: Optional[SiteURL] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LogicalFile):
            return NotImplemented
        return self.lfn == other.lfn

    def __hash__(self) -> int:
        return hash(self.lfn)

    @property
    def transient_transfer(self) -> bool:
        return self.transfer_mode == TransferMode.NEVER

    @property
    def transient_registration(self) -> bool:
        return not self.register

    @property
    def pre_resolved(self) -> bool:
        return self.source is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | str) -> LogicalFile:
        if isinstance(data, str):
            return cls(lfn=data)
        source = data.get("source")
        destination = data.get("destination")
        return cls(
            lfn=data["lfn"],
            size=int(data.get("size", 0)),
            file_type=FileType(data.get("type", FileType.DATA.value)),
            transfer_mode=TransferMode(data.get("transfer", TransferMode.ALWAYS.value)),
            register=bool(data.get("register", True)),
            optional=bool(data.get("optional", False)),
            source=SiteURL(source["site"], source["url"]) if source else None,
            destination=SiteURL(destination["site"], destination["url"]) if destination else None,
        )


@dataclass
class Job:
    """A workflow task as seen by the transfer planner.

    The planner only sets ``level``, ``staging_site`` and, for the nested
    workflow kinds, the resolved description path or arguments.
    """
    name: str
    site: str
    transformation: str = ""
    staging_site: Optional[str] = None
    level: int = 0
    input_files: list[LogicalFile] = field(default_factory=list)
    output_files: list[LogicalFile] = field(default_factory=list)
    kind: JobKind = JobKind.ORDINARY
    subworkflow_lfn: Optional[str] = None
    description_file: Optional[str] = None
    directory: Optional[str] = None
    external_directory: Optional[str] = None
    arguments: str = ""
    remote_initial_dir: Optional[str] = None

    def add_input(self, pf: LogicalFile) -> None:
        if pf not in self.input_files:
            self.input_files.append(pf)

    def add_output(self, pf: LogicalFile) -> None:
        if pf not in self.output_files:
            self.output_files.append(pf)

    def remove_input(self, pf: LogicalFile) -> bool:
        if pf in self.input_files:
            self.input_files.remove(pf)
            return True
        return False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        job = cls(
            name=data["name"],
            site=data["site"],
            transformation=data.get("transformation", ""),
            staging_site=data.get("staging_site"),
            kind=JobKind(data.get("kind", JobKind.ORDINARY.value)),
            subworkflow_lfn=data.get("subworkflow_lfn"),
            external_directory=data.get("external_directory"),
            arguments=data.get("arguments", ""),
            remote_initial_dir=data.get("remote_initial_dir"),
        )
        for raw in data.get("inputs", []):
            job.add_input(LogicalFile.from_dict(raw))
        for raw in data.get("outputs", []):
            job.add_output(LogicalFile.from_dict(raw))
        return job


@dataclass
class FileTransfer:
    """One file to move: candidate sources, destinations and the URL to register."""
    lfn: str
    job_name: str
    size: int = 0
    file_type: FileType = FileType.DATA
    transfer_mode: TransferMode = TransferMode.ALWAYS
    sources: list[SiteURL] = field(default_factory=list)
    destinations: list[SiteURL] = field(default_factory=list)
    registration_url: Optional[str] = None

    @classmethod
    def for_file(cls, pf: LogicalFile, job_name: str) -> FileTransfer:
        return cls(
            lfn=pf.lfn,
            job_name=job_name,
            size=pf.size,
            file_type=pf.file_type,
            transfer_mode=pf.transfer_mode,
        )

    def add_source(self, site: str, url: str) -> None:
        self.sources.append(SiteURL(site, url))

    def add_destination(self, site: str, url: str) -> None:
        self.destinations.append(SiteURL(site, url))

    def is_valid(self) -> bool:
        return bool(self.sources) and bool(self.destinations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lfn": self.lfn,
            "job": self.job_name,
            "size": self.size,
            "type": self.file_type.value,
            "transfer": self.transfer_mode.value,
            "sources": [s._asdict() for s in self.sources],
            "destinations": [d._asdict() for d in self.destinations],
            "registration_url": self.registration_url,
        }

from typing import Any

from pydantic import BaseModel


class ReplicaEntry(BaseModel):
    pfn: str
    site: str
    attributes: dict[str, Any] = {}


class ReplicaLocation(BaseModel):
    """All known physical locations for one logical file."""

    lfn: str
    entries: list[ReplicaEntry] = []

    @property
    def pfns(self) -> list[str]:
        return [e.pfn for e in self.entries]

    def add(self, entry: ReplicaEntry) -> None:
        self.entries.append(entry)

"""Replica selection policies: pure ranking of known locations for a target site."""

from __future__ import annotations

import logging
from typing import Optional

from stageplan.config import Settings
from stageplan.core.locator import is_file_url
from stageplan.models.replica import ReplicaEntry, ReplicaLocation

from .base import ReplicaSelector

logger = logging.getLogger(__name__)


class DefaultReplicaSelector(ReplicaSelector):
    """Prefer replicas at the target site, in catalog order.

    ``file://`` replicas are only reachable on their own site, or from the
    submit site when the transfer runs there.
    """

    description = "Default"

    def __init__(self, submit_site: str = "local"):
        self.submit_site = submit_site

    def _usable(self, entry: ReplicaEntry, site: str, prefer_local: bool) -> bool:
        if not is_file_url(entry.pfn) or entry.site == site:
            return True
        return prefer_local and entry.site == self.submit_site

    def rank(self, entries: list[ReplicaEntry], site: str) -> list[ReplicaEntry]:
        at_site = [e for e in entries if e.site == site]
        elsewhere = [e for e in entries if e.site != site]
        return at_site + elsewhere

    def _candidates(self, location: ReplicaLocation, site: str, prefer_local: bool) -> list[ReplicaEntry]:
        usable = [e for e in location.entries if self._usable(e, site, prefer_local)]
        return self.rank(usable, site)

    def select_one(
        self, location: ReplicaLocation, site: str, prefer_local: bool
    ) -> Optional[ReplicaEntry]:
        candidates = self._candidates(location, site, prefer_local)
        if not candidates:
            return None
        return candidates[0]

    def select_many(
        self, location: ReplicaLocation, site: str, prefer_local: bool
    ) -> list[ReplicaEntry]:
        candidates = self._candidates(location, site, prefer_local)
        at_site = [e for e in candidates if e.site == site]
        selected = at_site or candidates
        seen: set[str] = set()
        result = []
        for entry in selected:
            key = entry.pfn.lower()
            if key in seen:
                continue
            seen.add(key)
            result.append(entry)
        return result


class RestrictedReplicaSelector(DefaultReplicaSelector):
    """Drop replicas at ignored sites and rank by per-site preference lists."""

    description = "Restricted"

    def __init__(
        self,
        submit_site: str = "local",
        preferred_sites: Optional[dict[str, list[str]]] = None,
        ignored_sites: Optional[list[str]] = None,
    ):
        super().__init__(submit_site)
        self.preferred_sites = preferred_sites or {}
        self.ignored_sites = set(ignored_sites or [])

    def rank(self, entries: list[ReplicaEntry], site: str) -> list[ReplicaEntry]:
        entries = [e for e in entries if e.site not in self.ignored_sites]
        preferred = self.preferred_sites.get(site, [])
        if not preferred:
            return super().rank(entries, site)
        order = {s: i for i, s in enumerate(preferred)}
        ranked = sorted(entries, key=lambda e: order.get(e.site, len(order)))
        head = [e for e in ranked if e.site in order]
        tail = super().rank([e for e in ranked if e.site not in order], site)
        return head + tail


_SELECTORS = {
    "default": DefaultReplicaSelector,
    "restricted": RestrictedReplicaSelector,
}


def get_selector(settings: Settings) -> ReplicaSelector:
    name = settings.replica_selector.lower()
    if name not in _SELECTORS:
        raise ValueError(
            f"Unknown replica selector: {settings.replica_selector}. "
            f"Supported: {sorted(_SELECTORS)}"
        )
    if name == "restricted":
        return RestrictedReplicaSelector(
            settings.submit_site, settings.preferred_sites, settings.ignored_sites,
        )
    return DefaultReplicaSelector(settings.submit_site)

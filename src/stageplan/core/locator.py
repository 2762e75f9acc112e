"""Locator parsing, equivalence and scheme rewriting.

Locators are split into ``(scheme, host, path)``; everything after the host
is the path, so SRM locators keep their ``?SFN=`` component in ``path``.
A bare absolute path parses with an empty scheme and host.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import NamedTuple, Optional

from stageplan.models.replica import ReplicaEntry

logger = logging.getLogger(__name__)

FILE_SCHEME = "file"
SYMLINK_SCHEME = "symlink"

_URL_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*)://([^/]*)(.*)$")
# file:/path with a single slash
_SHORT_FILE_RE = re.compile(r"^file:(/[^/].*)?$", re.IGNORECASE)


class Locator(NamedTuple):
    scheme: str
    host: str
    path: str

    def __str__(self) -> str:
        if not self.scheme:
            return self.path
        return f"{self.scheme}://{self.host}{self.path}"


class SRMMapping(NamedTuple):
    service_url: str
    mount_point: str


def parse_locator(url: str) -> Locator:
    m = _URL_RE.match(url)
    if m:
        return Locator(m.group(1).lower(), m.group(2), m.group(3))
    m = _SHORT_FILE_RE.match(url)
    if m:
        return Locator(FILE_SCHEME, "", m.group(1) or "/")
    return Locator("", "", url)


def path_of(url: str) -> str:
    return parse_locator(url).path


def is_file_url(url: Optional[str]) -> bool:
    return url is not None and url.lower().startswith(FILE_SCHEME + ":")


def is_local_path(url: str) -> bool:
    """True for absolute filesystem paths and ``file:`` locators."""
    return url.startswith(os.sep) or is_file_url(url)


def to_file_url(path: str) -> str:
    return str(Locator(FILE_SCHEME, "", path))


def to_symlink_url(url: str) -> str:
    """Rewrite any locator to the symlink scheme, keeping only its path."""
    return str(Locator(SYMLINK_SCHEME, "", path_of(url)))


def to_local_replica(entry: ReplicaEntry, srm_map: dict[str, SRMMapping]) -> ReplicaEntry:
    """Return a copy of ``entry`` whose pfn is a ``file://`` locator.

    SRM locators for a site with a configured mapping have their service URL
    prefix replaced by the mount point; anything else is reduced to its path.
    ``file:`` locators are returned as is.
    """
    pfn = entry.pfn
    if is_file_url(pfn):
        return entry

    new_pfn = None
    mapping = srm_map.get(entry.site)
    if mapping is not None and pfn.startswith(mapping.service_url):
        new_pfn = to_file_url(mapping.mount_point + pfn[len(mapping.service_url):])
        logger.debug("Replaced pfn %s with %s", pfn, new_pfn)
    if new_pfn is None:
        new_pfn = to_file_url(path_of(pfn))
    return ReplicaEntry(pfn=new_pfn, site=entry.site, attributes=dict(entry.attributes))


def build_srm_map(srm: dict[str, dict[str, str]]) -> dict[str, SRMMapping]:
    """Build the per-site SRM service URL -> mount point map from settings."""
    result = {}
    for site, values in srm.items():
        service_url = values.get("service_url")
        mount_point = values.get("mount_point")
        if not service_url:
            continue
        if not mount_point:
            logger.warning("Mount point for SRM server not specified for site %s", site)
            continue
        result[site] = SRMMapping(service_url, mount_point)
    logger.debug("SRM server map is %s", result)
    return result


def _canonical(path: str) -> str:
    return str(Path(path).resolve(strict=True))


def equivalent(
    a: str,
    b: str,
    site_a: Optional[str] = None,
    site_b: Optional[str] = None,
    lfn: Optional[str] = None,
) -> bool:
    """Whether two locators name the same placement.

    Equal ignoring case, or at the same site with ``lfn`` as the final path
    segment of both and parent directories that canonicalize to the same
    path. A path that cannot be canonicalized is never equivalent.
    """
    if a.lower() == b.lower():
        return True
    if site_a is None or site_b is None or lfn is None:
        return False
    if site_a.lower() != site_b.lower():
        return False
    path_a, path_b = path_of(a), path_of(b)
    if os.path.basename(path_a) != lfn or os.path.basename(path_b) != lfn:
        return False
    try:
        return _canonical(os.path.dirname(path_a)) == _canonical(os.path.dirname(path_b))
    except (OSError, RuntimeError):
        return False

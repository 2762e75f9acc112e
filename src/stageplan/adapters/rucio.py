"""Rucio replica lookups using httpx with X.509 certificate authentication.

RSE names are turned into the site handles used by the site catalog:
an explicit ``site_map`` entry wins, RSEs with a skipped suffix (tape
endpoints by default) are dropped, and a trailing ``_<suffix>`` from
``strip_suffixes`` is removed. Anything else is used as is.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional

import httpx

from .base import RucioAdapter

logger = logging.getLogger(__name__)

DEFAULT_STRIP_SUFFIXES = ("Disk", "Test", "Temp")
DEFAULT_SKIP_SUFFIXES = ("Tape",)


class RucioClient(RucioAdapter):
    def __init__(
        self,
        base_url: str,
        account: str,
        cert_file: str,
        key_file: str,
        scope: str = "cms",
        transport: httpx.AsyncBaseTransport | None = None,
        site_map: Optional[dict[str, str]] = None,
        strip_suffixes: Iterable[str] = DEFAULT_STRIP_SUFFIXES,
        skip_suffixes: Iterable[str] = DEFAULT_SKIP_SUFFIXES,
        max_attempts: int = 3,
        backoff: float = 1.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._scope = scope
        self._site_map = dict(site_map or {})
        self._strip_suffixes = tuple(f"_{s}" for s in strip_suffixes)
        self._skip_suffixes = tuple(f"_{s}" for s in skip_suffixes)
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff
        client_args: dict[str, Any] = {
            "timeout": 60.0,
            "headers": {"X-Rucio-Account": account},
        }
        if transport is not None:
            client_args["transport"] = transport
        else:
            client_args["cert"] = (cert_file, key_file)
            client_args["verify"] = True
        self._client = httpx.AsyncClient(**client_args)

    async def close(self):
        await self._client.aclose()

    async def _post_json(self, path: str, payload: Any) -> Any:
        url = f"{self._base_url}{path}"
        for attempt in range(1, self._max_attempts + 1):
            try:
                resp = await self._client.post(url, json=payload)
                resp.raise_for_status()
                return resp.json()
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                if attempt == self._max_attempts:
                    raise
                delay = self._backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Rucio POST %s failed (%d/%d): %s; next attempt in %.1fs",
                    path, attempt, self._max_attempts, exc, delay,
                )
                await asyncio.sleep(delay)

    def site_for_rse(self, rse: str) -> Optional[str]:
        """Site handle for an RSE, or None when its replicas are unusable."""
        if rse in self._site_map:
            return self._site_map[rse]
        if rse.endswith(self._skip_suffixes):
            return None
        for suffix in self._strip_suffixes:
            if rse.endswith(suffix):
                return rse[: -len(suffix)]
        return rse

    async def get_replicas(self, lfns: list[str]) -> dict[str, list[dict[str, Any]]]:
        payload = {"dids": [{"scope": self._scope, "name": lfn} for lfn in lfns], "all_states": False}
        data = await self._post_json("/replicas/list", payload)
        result: dict[str, list[dict[str, Any]]] = {lfn: [] for lfn in lfns}
        if not isinstance(data, list):
            logger.warning("Unexpected Rucio replica listing: %r", type(data).__name__)
            return result
        for did in data:
            replicas = result.get(did.get("name", ""))
            if replicas is None:
                continue
            for pfn, info in sorted(did.get("pfns", {}).items()):
                rse = info.get("rse", "")
                site = self.site_for_rse(rse)
                if not site:
                    continue
                replicas.append({
                    "pfn": pfn,
                    "site": site,
                    "attributes": {"rse": rse, "type": info.get("type", "")},
                })
        return result

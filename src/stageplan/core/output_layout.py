"""Relative placement of stage-out files on the output site.

Layouts hand out relative paths (``root/.../lfn``), never touch the
filesystem, and are stateful: every call to ``allocate()`` consumes one
slot. One layout instance serves exactly one planning run.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

from stageplan.core.errors import LayoutError

logger = logging.getLogger(__name__)

DEFAULT_FANOUT = 256


class OutputLayout(ABC):
    def __init__(self, root: str = ""):
        self.root = root.strip("/")
        self.allocated = 0

    @abstractmethod
    def directory_for(self, slot: int) -> str:
        """Relative directory for the given 0-based slot."""

    def allocate(self, lfn: str) -> str:
        directory = self.directory_for(self.allocated)
        self.allocated += 1
        return f"{directory}/{lfn}" if directory else lfn

    @property
    def description(self) -> str:
        return type(self).__name__


class FlatLayout(OutputLayout):
    """Every file directly under the root."""

    def directory_for(self, slot: int) -> str:
        return self.root


class HashedLayout(OutputLayout):
    """Bounded fan-out directory tree sized for ``total_files``.

    With ``levels`` directory levels and fan-out ``F`` the tree holds
    ``F ** (levels + 1)`` files: every directory has at most ``F`` entries,
    either subdirectories or files. Slot ``k`` lands in leaf ``k // F``.
    """

    def __init__(self, root: str = "", total_files: int = 0, fanout: int = DEFAULT_FANOUT):
        super().__init__(root)
        if fanout < 2:
            raise LayoutError(f"Hashed layout fan-out must be at least 2, got {fanout}")
        self.fanout = fanout
        self.total_files = max(0, total_files)
        self.levels = self._levels_for(self.total_files, fanout)
        self.capacity = fanout ** (self.levels + 1)
        self._width = len(str(fanout - 1))
        logger.debug(
            "Hashed layout for %d files: %d level(s), fan-out %d",
            self.total_files, self.levels, fanout,
        )

    @staticmethod
    def _levels_for(total: int, fanout: int) -> int:
        if total <= fanout:
            return 1
        # fanout ** (levels + 1) >= total
        levels = max(1, math.ceil(math.log(total, fanout)) - 1)
        while fanout ** (levels + 1) < total:
            levels += 1
        return levels

    def directory_for(self, slot: int) -> str:
        if slot >= self.capacity:
            raise LayoutError(
                f"Hashed layout exhausted: slot {slot} exceeds capacity {self.capacity} "
                f"sized for {self.total_files} files"
            )
        leaf = slot // self.fanout
        parts = []
        for _ in range(self.levels):
            leaf, digit = divmod(leaf, self.fanout)
            parts.append(f"{digit:0{self._width}d}")
        parts.reverse()
        if self.root:
            parts.insert(0, self.root)
        return "/".join(parts)


def create_layout(deep: bool, root: str, total_files: int, fanout: int = DEFAULT_FANOUT) -> OutputLayout:
    if deep:
        return HashedLayout(root, total_files, fanout)
    return FlatLayout(root)

"""One-shot view centering."""

from __future__ import annotations

from collections.abc import Callable

import structlog

from modules.tracking.models import Coordinate

logger = structlog.get_logger()


class ViewCenterController:
    """Arbitrates recenter requests from tracking and from search.

    ``request_center`` arms the flag (last writer wins). ``consume`` is the only
    place the flag is cleared and must be called once per render cycle, so a
    request moves the view exactly once and a later manual pan is left alone.
    """

    def __init__(self) -> None:
        self.target: Coordinate | None = None
        self.source: str | None = None
        self.pending = False

    def request_center(self, target: Coordinate, source: str = "tracking") -> None:
        self.target = target
        self.source = source
        self.pending = True

    def consume(self, apply: Callable[[Coordinate], None] | None = None) -> Coordinate | None:
        """Hand the pending target to ``apply`` and clear the flag.

        Returns the target that was applied, or None if nothing was pending.
        """
        if not self.pending:
            return None
        target = self.target
        self.pending = False
        if apply is not None and target is not None:
            apply(target)
        logger.debug("view_centered", target=str(target), source=self.source)
        return target

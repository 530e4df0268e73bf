"""Two-click swap interaction ("pick source, pick target").

States: idle -> source-selected -> idle. The session only remembers the
pending source; the store does all validation. It is UI-driven and
single-user, so it lives in the page session state between reruns.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import logging

from .errors import ObservationError
from .models import SlotRef
from .store import AssignmentStore


logger = logging.getLogger(__name__)


class SwapState(str, Enum):
    IDLE = "idle"
    SOURCE_SELECTED = "source-selected"


@dataclass(frozen=True)
class SwapOutcome:
    """Result of one click.

    status: ignored | selected | cancelled | swapped | rejected
    """

    status: str
    message: str = ""
    source: Optional[SlotRef] = None
    target: Optional[SlotRef] = None

    @property
    def ok(self) -> bool:
        return self.status != "rejected"


class SwapSession:
    def __init__(self) -> None:
        self.enabled = False
        self.source: Optional[SlotRef] = None

    @property
    def state(self) -> SwapState:
        return SwapState.SOURCE_SELECTED if self.source is not None else SwapState.IDLE

    def toggle(self, enabled: Optional[bool] = None) -> bool:
        """Turn swap mode on/off; turning it off drops any pending source."""

        self.enabled = (not self.enabled) if enabled is None else bool(enabled)
        if not self.enabled:
            self.source = None
        return self.enabled

    def cancel(self) -> SwapOutcome:
        source, self.source = self.source, None
        return SwapOutcome("cancelled", "Swap cancelled.", source=source)

    def select(self, ref: SlotRef, store: AssignmentStore) -> SwapOutcome:
        if not self.enabled:
            return SwapOutcome("ignored")

        if self.source is None:
            if not store.get_slot(ref):
                return SwapOutcome("ignored", "Pick a slot that has an observer first.")
            self.source = ref
            logger.debug("Swap source %s", ref.label())
            return SwapOutcome(
                "selected",
                f"Selected {store.observer_name(store.get_slot(ref))}. Now pick the slot to swap with.",
                source=ref,
            )

        source = self.source
        if source == ref:
            return self.cancel()

        self.source = None
        try:
            swapped = store.swap_slots(source, ref)
        except ObservationError as exc:
            return SwapOutcome("rejected", f"Swap failed: {exc.reason}", source=source, target=ref)
        if not swapped:
            # Source was emptied since it was picked; stay in swap mode.
            return SwapOutcome("cancelled", "Nothing to swap.", source=source, target=ref)

        # A completed swap leaves swap mode, like a finished edit.
        self.enabled = False
        return SwapOutcome("swapped", "Swap completed.", source=source, target=ref)

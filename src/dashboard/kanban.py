"""Deal board state with optimistic drag-and-drop.

The board keeps the last server snapshot (`authoritative`) and, while a move
is in flight, a locally edited copy (`optimistic`). `columns` shows the
optimistic copy when there is one. Whatever the server answers, the
optimistic copy is dropped and the board is refetched.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Protocol

from core.logging_config import get_logger
from core.models import STAGES

LOGGER = get_logger(__name__)

Columns = Dict[str, List[Dict[str, Any]]]


class BoardAPI(Protocol):
    """The two API calls the board needs; `CRMClient` satisfies it."""

    def deals_board(self, **filters: Any) -> Columns: ...

    def transition_stage(self, deal_id: str, stage: str, lost_reason: Optional[str] = None) -> Dict[str, Any]: ...


class KanbanBoard:
    """Deals grouped by stage, with optimistic stage moves."""

    def __init__(self, api: BoardAPI, **filters: Any) -> None:
        self.api = api
        self.filters = filters
        self.authoritative: Columns = {stage: [] for stage in STAGES}
        self.optimistic: Optional[Columns] = None
        self.last_error: Optional[Exception] = None

    @property
    def columns(self) -> Columns:
        return self.optimistic if self.optimistic is not None else self.authoritative

    @property
    def total(self) -> int:
        return sum(len(deals) for deals in self.columns.values())

    def refresh(self) -> Columns:
        """Replace the snapshot with a fresh `GET /deals?groupBy=stage`."""
        data = self.api.deals_board(**self.filters)
        self.authoritative = {stage: list(data.get(stage, [])) for stage in STAGES}
        return self.authoritative

    def stage_of(self, deal_id: str) -> Optional[str]:
        for stage in STAGES:
            if any(deal["id"] == deal_id for deal in self.columns.get(stage, [])):
                return stage
        return None

    def _target_stage(self, over_id: str) -> Optional[str]:
        if over_id in STAGES:
            return over_id
        return self.stage_of(over_id)

    def drop(self, deal_id: str, over_id: str) -> bool:
        """
        Handle a card released over a column or over another card.

        Returns False without calling the server when either stage cannot be
        resolved or the card did not change stage. Otherwise moves the card
        locally, asks the server to transition it and refetches; returns True
        if the server accepted the move.
        """
        source = self.stage_of(deal_id)
        target = self._target_stage(over_id)
        if source is None or target is None or source == target:
            return False

        moved: Columns = {stage: list(self.columns.get(stage, [])) for stage in STAGES}
        card = next(deal for deal in moved[source] if deal["id"] == deal_id)
        moved[source] = [deal for deal in moved[source] if deal["id"] != deal_id]
        moved[target].append({**copy.deepcopy(card), "stage": target})
        self.optimistic = moved

        accepted = True
        self.last_error = None
        try:
            self.api.transition_stage(deal_id, target)
        except Exception as e:
            LOGGER.warning(f"Stage move {deal_id} {source} -> {target} rejected: {e}")
            self.last_error = e
            accepted = False
        finally:
            self.optimistic = None

        self.refresh()
        return accepted


__all__ = ["KanbanBoard", "BoardAPI", "Columns"]

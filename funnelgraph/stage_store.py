"""
Stage Store

Ordered collection of funnel stages owned by a single editing session.

The list index is the traversal order used for "next" resolution. Only
`reorder` changes it; every other mutation leaves the relative order of the
remaining stages untouched. Ids are allocated once and never change.

Not thread-safe: one writer per store.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Union

from .stage_types import Component, Connection, Position, Stage, coerce_stage

logger = logging.getLogger(__name__)


class FunnelGraphError(Exception):
    """Base class for recoverable stage operation errors."""


class StageNotFoundError(FunnelGraphError):
    """Operation referenced a stage id that is not in the store."""

    def __init__(self, stage_id: str):
        self.stage_id = stage_id
        super().__init__(f"Stage not found: {stage_id}")


class InvalidReorderError(FunnelGraphError):
    """Reorder input is not a permutation of the current stage ids."""

    def __init__(self, missing: List[str], unexpected: List[str], duplicates: List[str]):
        self.missing = missing
        self.unexpected = unexpected
        self.duplicates = duplicates
        parts = []
        if missing:
            parts.append(f"missing={missing}")
        if unexpected:
            parts.append(f"unexpected={unexpected}")
        if duplicates:
            parts.append(f"duplicates={duplicates}")
        super().__init__(f"Invalid reorder: {', '.join(parts)}")


class DuplicateStageError(FunnelGraphError):
    """Snapshot contains the same stage id more than once."""

    def __init__(self, stage_id: str):
        self.stage_id = stage_id
        super().__init__(f"Duplicate stage id: {stage_id}")


class StageStore:
    """
    CRUD and reordering over the stage list.

    Reads return deep copies so callers cannot mutate stored stages behind
    the store's back.
    """

    def __init__(self, stages: Optional[Iterable[Union[Stage, Dict[str, Any]]]] = None):
        self._stages: List[Stage] = []
        for stage in stages or []:
            stage = coerce_stage(stage).model_copy(deep=True)
            if self._index_of(stage.id) is not None:
                raise DuplicateStageError(stage.id)
            self._stages.append(stage)

    # ------------------------------------------------------------------
    # Snapshot I/O
    # ------------------------------------------------------------------

    @classmethod
    def from_snapshot(cls, data: Iterable[Dict[str, Any]]) -> 'StageStore':
        """Load the plain serializable stage list produced by `to_snapshot`."""
        return cls(data)

    def to_snapshot(self) -> List[Dict[str, Any]]:
        """Dump stages in order using the editor's field names."""
        return [s.model_dump(by_alias=True, exclude_none=True) for s in self._stages]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._stages)

    def __contains__(self, stage_id: object) -> bool:
        return self._index_of(stage_id) is not None

    def ids(self) -> List[str]:
        return [s.id for s in self._stages]

    def stages(self) -> List[Stage]:
        return [s.model_copy(deep=True) for s in self._stages]

    def get(self, stage_id: str) -> Stage:
        return self._find(stage_id).model_copy(deep=True)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, name: str) -> Stage:
        """Append a new empty stage with a fresh id."""
        stage_id = str(uuid.uuid4())
        while stage_id in self:
            stage_id = str(uuid.uuid4())
        stage = Stage(id=stage_id, name=name)
        self._stages.append(stage)
        logger.debug("Created stage %s (%r) at index %d", stage_id, name, len(self._stages) - 1)
        return stage.model_copy(deep=True)

    def rename(self, stage_id: str, name: str) -> None:
        """
        Set a stage's display name.

        Raises StageNotFoundError for an absent id rather than silently doing
        nothing, so a stale editor snapshot surfaces as a 404.
        """
        self._find(stage_id).name = name

    def remove(self, stage_id: str) -> None:
        """
        Delete a stage.

        References to it held by other stages are left in place; the validator
        reports them as dangling.
        """
        index = self._index_of(stage_id)
        if index is None:
            raise StageNotFoundError(stage_id)
        del self._stages[index]
        logger.debug("Removed stage %s", stage_id)

    def reorder(self, new_order: Iterable[str]) -> None:
        """Replace the traversal order. `new_order` must be a permutation of `ids()`."""
        new_order = list(new_order)
        current = self.ids()

        seen = set()
        duplicates = []
        for stage_id in new_order:
            if stage_id in seen and stage_id not in duplicates:
                duplicates.append(stage_id)
            seen.add(stage_id)
        missing = [s for s in current if s not in seen]
        unexpected = [s for s in new_order if s not in current]

        if missing or unexpected or duplicates:
            raise InvalidReorderError(missing, unexpected, duplicates)

        by_id = {s.id: s for s in self._stages}
        self._stages = [by_id[stage_id] for stage_id in new_order]

    def set_components(self, stage_id: str, components: Iterable[Union[Component, Dict[str, Any]]]) -> None:
        stage = self._find(stage_id)
        stage.components = [
            c.model_copy(deep=True) if isinstance(c, Component) else Component.model_validate(c)
            for c in components
        ]

    def move(self, stage_id: str, x: float, y: float) -> None:
        """Set the canvas position. Does not affect traversal order."""
        self._find(stage_id).position = Position(x=x, y=y)

    def connect(self, from_stage_id: str, to_stage_id: str, source_branch_id: Optional[str] = None) -> Connection:
        """Record an explicit canvas edge on the source stage."""
        stage = self._find(from_stage_id)
        conn = Connection(
            from_stage_id=from_stage_id,
            to_stage_id=to_stage_id,
            source_branch_id=source_branch_id,
        )
        stage.connections.append(conn)
        return conn.model_copy()

    def disconnect(self, from_stage_id: str, to_stage_id: str) -> int:
        """Drop every explicit edge from `from_stage_id` to `to_stage_id`. Returns how many were removed."""
        stage = self._find(from_stage_id)
        kept = [c for c in stage.connections if c.to_stage_id != to_stage_id]
        removed = len(stage.connections) - len(kept)
        stage.connections = kept
        return removed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _index_of(self, stage_id: object) -> Optional[int]:
        for index, stage in enumerate(self._stages):
            if stage.id == stage_id:
                return index
        return None

    def _find(self, stage_id: str) -> Stage:
        index = self._index_of(stage_id)
        if index is None:
            raise StageNotFoundError(stage_id)
        return self._stages[index]

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from tqdm import tqdm

from ..diff import DiffResult
from ..disposal.executor import DisposalExecutor
from ..exceptions import CopyFailedError, DeleteFailedError, DisposalError, InvalidActionError
from ..metadata.extract import MetadataExtractor
from ..models import (
    Action, Disposition, DisposalFailure, FileInfo, ItemState, MediaFile, SessionSummary,
)
from .filters import Filter

ACTION_TO_STATE = {
    Action.TRASH: ItemState.TRASHED,
    Action.KEEP: ItemState.KEPT,
    Action.SKIP: ItemState.SKIPPED,
    Action.DEFER: ItemState.DEFERRED,
}


@dataclass
class ReviewSession:
    """
    Everything a triage run knows: the diff, each item's state, the active
    filter and the batch selection. Items are keyed by relative path, which is
    unique even when two backup files share an identity key.
    """
    items: DiffResult
    states: Dict[str, ItemState] = field(default_factory=dict)
    filter: Optional[Filter] = None
    selection: Set[str] = field(default_factory=set)
    deferred_reasons: Dict[str, str] = field(default_factory=dict)
    trash_paths: Dict[str, Path] = field(default_factory=dict)
    failures: List[DisposalFailure] = field(default_factory=list)
    dry_run: bool = False

    @classmethod
    def start(cls, items: Iterable[MediaFile]) -> "ReviewSession":
        items = tuple(items)
        return cls(items=items, states={i.relative_path: ItemState.PENDING for i in items})

    def __contains__(self, item: MediaFile) -> bool:
        return item.relative_path in self.states

    def state_of(self, item: MediaFile) -> ItemState:
        return self.states[item.relative_path]

    def working_set(self) -> List[MediaFile]:
        """Items visible through the current filter, in diff order."""
        if self.filter is None:
            return list(self.items)
        return self.filter.apply(self.items)

    def remaining(self) -> List[MediaFile]:
        """Working-set items without a final disposition (pending or deferred)."""
        return [i for i in self.working_set() if not self.state_of(i).is_terminal]

    def selected(self) -> List[MediaFile]:
        return [i for i in self.items if i.relative_path in self.selection]


class DecisionEngine:
    """
    Turns operator decisions into dispositions. Holds no state of its own:
    every call reads and updates the ReviewSession it is given.
    """

    def __init__(self,
                 executor: DisposalExecutor,
                 extractor: Optional[MetadataExtractor] = None,
                 show_progress: bool = True):
        self.executor = executor
        self.extractor = extractor or MetadataExtractor()
        self.show_progress = show_progress

    # --- Per-item ---

    def inspect(self, session: ReviewSession, item: MediaFile) -> FileInfo:
        self._require_member(session, item)
        return self.extractor.describe(item)

    def decide(self,
               session: ReviewSession,
               item: MediaFile,
               action: Action,
               reason: Optional[str] = None) -> Disposition:
        """
        Applies one action to one item.

        Raises InvalidActionError when the item already has a final state.
        Disposal errors are recorded on the session and re-raised.
        """
        self._require_member(session, item)
        key = item.relative_path
        state = session.states[key]
        if state.is_terminal:
            raise InvalidActionError(f"{key} is already {state.value}")

        disposition = Disposition.for_action(action, reason)
        if self.executor.dry_run:
            session.dry_run = True

        try:
            trash_path = self.executor.dispose(item, disposition)
        except CopyFailedError as e:
            # Nothing happened on disk, so the item can be retried
            session.states[key] = ItemState.PENDING
            self._record_failure(session, item, "copy", e)
            raise
        except DeleteFailedError as e:
            # A copy already sits in the trash; no second destructive attempt
            session.states[key] = ItemState.FAILED
            session.selection.discard(key)
            if e.destination:
                session.trash_paths[key] = e.destination
            self._record_failure(session, item, "delete", e)
            raise

        session.states[key] = ACTION_TO_STATE[action]
        if action is Action.DEFER:
            session.deferred_reasons[key] = disposition.reason
        else:
            session.deferred_reasons.pop(key, None)
            session.selection.discard(key)
        if trash_path is not None:
            session.trash_paths[key] = trash_path

        return disposition

    def next_item(self, session: ReviewSession) -> Optional[MediaFile]:
        """
        Next pending item of the working set. Once only deferred items are
        left they are put back in the queue.
        """
        remaining = session.remaining()
        for item in remaining:
            if session.state_of(item) is ItemState.PENDING:
                return item

        if not remaining:
            return None

        logging.info(f"Returning to {len(remaining)} deferred files")
        for item in remaining:
            session.states[item.relative_path] = ItemState.PENDING
        return remaining[0]

    # --- Batch selection ---

    def select_for_batch(self, session: ReviewSession, item: MediaFile):
        self._require_member(session, item)
        if session.state_of(item).is_terminal:
            raise InvalidActionError(f"{item.relative_path} is already {session.state_of(item).value}")
        session.selection.add(item.relative_path)

    def deselect_for_batch(self, session: ReviewSession, item: MediaFile):
        self._require_member(session, item)
        session.selection.discard(item.relative_path)

    def apply_batch(self, session: ReviewSession, action: Action) -> List[DisposalFailure]:
        """Applies action to every selected item, then clears the selection."""
        items = session.selected()
        try:
            return self._apply_each(session, items, action, desc="Batch")
        finally:
            session.selection.clear()

    def apply_to_remaining(self, session: ReviewSession, action: Action) -> List[DisposalFailure]:
        """Applies action to every unfinished item of the working set, in diff order."""
        return self._apply_each(session, session.remaining(), action, desc="Remaining")

    # --- Filtering ---

    def set_filter(self, session: ReviewSession, new_filter: Filter) -> List[MediaFile]:
        session.filter = new_filter
        remaining = session.remaining()
        logging.info(f"Filter {new_filter.describe()}: {len(remaining)} files to process")
        return remaining

    def clear_filter(self, session: ReviewSession) -> List[MediaFile]:
        session.filter = None
        return session.remaining()

    # --- Reporting ---

    def summary(self, session: ReviewSession) -> SessionSummary:
        result = SessionSummary(failures=list(session.failures), dry_run=session.dry_run)
        for state in session.states.values():
            if state is ItemState.TRASHED:
                result.trashed += 1
            elif state is ItemState.KEPT:
                result.kept += 1
            elif state is ItemState.SKIPPED:
                result.skipped += 1
            elif state is ItemState.FAILED:
                result.failed += 1
            else:
                result.pending += 1
        return result

    # --- Internals ---

    def _apply_each(self,
                    session: ReviewSession,
                    items: List[MediaFile],
                    action: Action,
                    desc: str) -> List[DisposalFailure]:
        """Decides each item independently; one failure never stops the loop."""
        failures_before = len(session.failures)
        if not items:
            logging.info("No files to process.")
            return []

        logging.info(f"Applying {action.name.lower()} to {len(items)} files...")
        for item in tqdm(items, desc=desc, unit="file", disable=not self.show_progress):
            if session.state_of(item).is_terminal:
                logging.warning(f"Already {session.state_of(item).value}, not changing: {item.relative_path}")
                continue
            try:
                self.decide(session, item, action)
            except DisposalError as e:
                logging.error(f"Failed to dispose {item.relative_path}: {e}")

        return session.failures[failures_before:]

    def _record_failure(self, session: ReviewSession, item: MediaFile, stage: str, err: DisposalError):
        session.failures.append(DisposalFailure(
            relative_path=item.relative_path,
            stage=stage,
            message=str(err),
            trash_path=err.destination if stage == "delete" else None,
        ))

    def _require_member(self, session: ReviewSession, item: MediaFile):
        if item not in session:
            raise InvalidActionError(f"{item.relative_path} is not part of this session")

"""
Terminal prompt loop for reviewing files that are in the backup but not in Immich.
"""
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional

from .decision.engine import DecisionEngine, ReviewSession
from .decision.filters import Filter
from .exceptions import CopyFailedError, DeleteFailedError
from .models import Action, MediaFile, MediaKind, SessionSummary

HELP_LINES = [
    "[t] Move to trash (copy to trash, then delete from backup)",
    "[k] Keep in backup",
    "[x] Skip this file for now",
    "[l] Decide later (file comes back at the end)",
    "[v] View file info and optionally open file",
    "[d] Open directory containing file",
    "[s] Select multiple files for batch processing",
    "[f] Apply filter to remaining files",
    "[c] Clear filter",
    "[a] Process all remaining files with the same action",
    "[q] Quit sync process",
]

BULK_ACTIONS = {
    't': Action.TRASH,
    'k': Action.KEEP,
    'x': Action.SKIP,
}


def open_with_default_app(path: Path):
    """Hands path to the desktop's default application without waiting for it."""
    try:
        if sys.platform == "darwin":
            subprocess.Popen(["open", str(path)])
        elif sys.platform.startswith("win"):
            os.startfile(str(path))
        else:
            subprocess.Popen(["xdg-open", str(path)])
    except OSError as e:
        logging.warning(f"Could not open {path}: {e}")


class InteractiveReviewer:
    def __init__(self,
                 engine: DecisionEngine,
                 session: ReviewSession,
                 input_fn: Optional[Callable[[str], str]] = None,
                 opener: Callable[[Path], None] = open_with_default_app):
        self.engine = engine
        self.session = session
        self.input_fn = input_fn or input
        self.opener = opener

    def run(self) -> SessionSummary:
        if not self.session.items:
            logging.info("No discrepancies found. Nothing to review.")
            return self.engine.summary(self.session)

        logging.info("Beginning interactive sync process...")
        self._print_help()
        base_filter = self.session.filter

        while True:
            item = self.engine.next_item(self.session)
            if item is None and self.session.filter != base_filter:
                logging.info("No more files match the filter; returning to the other files")
                self._restore_filter(base_filter)
                item = self.engine.next_item(self.session)
            if item is None:
                break

            working = self.session.working_set()
            logging.info(f"File {working.index(item) + 1}/{len(working)}: {item.relative_path}")
            choice = self._ask("Action [t/k/x/l/v/d/s/f/c/a/q]: ")

            if choice == 'q' or self._handle(item, choice):
                summary = self.engine.summary(self.session)
                logging.info(f"Sync process cancelled. {summary.pending} files left undecided.")
                return summary

        return self.engine.summary(self.session)

    def _handle(self, item: MediaFile, choice: str) -> bool:
        """Runs one command. Returns True when the operator asked to quit."""
        if choice == 't':
            return self._trash(item)
        elif choice == 'k':
            self.engine.decide(self.session, item, Action.KEEP)
        elif choice == 'x':
            self.engine.decide(self.session, item, Action.SKIP)
        elif choice == 'l':
            reason = self._ask("Reason (optional): ", lower=False) or "decide later"
            self.engine.decide(self.session, item, Action.DEFER, reason)
        elif choice == 'v':
            self._view(item)
        elif choice == 'd':
            logging.info("Opening directory containing file...")
            self.opener(item.path.parent)
            self._ask("Press Enter to continue...")
        elif choice == 's':
            self._batch_select(item)
        elif choice == 'f':
            self._filter()
        elif choice == 'c':
            remaining = self.engine.clear_filter(self.session)
            logging.info(f"Filter cleared: {len(remaining)} files to process")
        elif choice == 'a':
            action = self._ask_bulk_action("Apply which action to all remaining files? [t/k/x]: ")
            if action:
                self.engine.apply_to_remaining(self.session, action)
        elif choice in ('h', '?'):
            self._print_help()
        else:
            logging.warning(f"Invalid action '{choice}'. Please choose [t/k/x/l/v/d/s/f/c/a/q].")
        return False

    def _trash(self, item: MediaFile) -> bool:
        while True:
            try:
                self.engine.decide(self.session, item, Action.TRASH)
                return False
            except DeleteFailedError:
                logging.warning("Manual deletion may be required")
                return False
            except CopyFailedError:
                retry = self._ask("Try again? [Y/n/q]: ")
                if retry == 'q':
                    # Item stays pending
                    return True
                if retry == 'n':
                    self.engine.decide(self.session, item, Action.SKIP)
                    return False

    def _view(self, item: MediaFile):
        try:
            info = self.engine.inspect(self.session, item)
        except OSError as e:
            logging.warning(f"Cannot read {item.relative_path}: {e}")
            return
        logging.info(f"File info for {info.relative_path}")
        logging.info(f"Size: {info.size_bytes} bytes")
        logging.info(f"Modified: {info.modified_time:%Y-%m-%d %H:%M:%S}")
        logging.info(f"Media Type: {info.kind.value.capitalize()}")
        if info.capture_datetime:
            logging.info(f"Captured: {info.capture_datetime:%Y-%m-%d %H:%M:%S}")
        if info.camera_model:
            logging.info(f"Camera: {info.camera_model}")
        if info.width and info.height:
            logging.info(f"Dimensions: {info.width}x{info.height}")
        if info.duration_sec is not None:
            logging.info(f"Duration: {info.duration_sec:.1f}s")

        if self._ask("View this file? [y/N]: ") == 'y':
            logging.info("Opening file with default application...")
            self.opener(item.path)
            self._ask("Press Enter to continue...")

    def _batch_select(self, start: MediaFile):
        logging.info("Starting batch selection mode. You'll be shown each file to select or skip.")
        candidates = self.session.remaining()
        candidates = candidates[candidates.index(start):]

        idx = 0
        while idx < len(candidates):
            candidate = candidates[idx]
            logging.info(f"Candidate {idx + 1}/{len(candidates)}: {candidate.relative_path}")
            answer = self._ask("Select this file? [y/n/v/q]: ")
            if answer == 'y':
                self.engine.select_for_batch(self.session, candidate)
                idx += 1
            elif answer == 'n':
                self.engine.deselect_for_batch(self.session, candidate)
                idx += 1
            elif answer == 'v':
                self._view(candidate)
            elif answer == 'q':
                logging.info("Exiting batch selection mode")
                break
            else:
                logging.warning(f"Invalid action '{answer}'. Please choose [y/n/v/q].")

        selected = self.session.selected()
        if not selected:
            logging.info("No files were selected. Continuing with regular processing.")
            return

        logging.info(f"Selected {len(selected)} files. Choose action to apply to selected files:")
        action = self._ask_bulk_action("Action for selected files [t/k/x]: ")
        if action is None:
            logging.warning("No action taken on selected files.")
            for candidate in selected:
                self.engine.deselect_for_batch(self.session, candidate)
            return
        self.engine.apply_batch(self.session, action)

    def _filter(self):
        choice = self._ask("Filter by (1) Photos only, (2) Videos only, (3) Filename pattern: ")
        if choice == '1':
            new_filter = Filter(kind=MediaKind.PHOTO)
        elif choice == '2':
            new_filter = Filter(kind=MediaKind.VIDEO)
        elif choice == '3':
            pattern = self._ask("Enter filename pattern to match: ", lower=False)
            if not pattern:
                logging.warning("Empty pattern. Filter not applied.")
                return
            new_filter = Filter(pattern=pattern)
        else:
            logging.warning("Invalid choice. Filter not applied.")
            return

        previous = self.session.filter
        remaining = self.engine.set_filter(self.session, new_filter)
        if not remaining:
            logging.info("No files matched the filter criteria")
            self._restore_filter(previous)
            return

        action = self._ask_bulk_action("Apply action to all filtered files? [t/k/x, Enter for none]: ")
        if action:
            self.engine.apply_to_remaining(self.session, action)
            self._restore_filter(previous)
        else:
            logging.info("No bulk action taken. Continuing with filtered files.")

    def _restore_filter(self, previous: Optional[Filter]):
        if previous is None:
            self.engine.clear_filter(self.session)
        else:
            self.engine.set_filter(self.session, previous)

    def _ask_bulk_action(self, prompt: str) -> Optional[Action]:
        return BULK_ACTIONS.get(self._ask(prompt))

    def _ask(self, prompt: str, lower: bool = True) -> str:
        try:
            answer = self.input_fn(prompt).strip()
        except EOFError:
            # Closed stdin behaves like quitting
            return 'q'
        return answer.lower() if lower else answer

    def _print_help(self):
        logging.info("-------------------------------------------------")
        logging.info("Options for each file:")
        for line in HELP_LINES:
            logging.info(line)
        logging.info("-------------------------------------------------")

import csv
import logging
from pathlib import Path

from .decision.engine import ReviewSession
from .models import ItemState, SessionSummary


class ReportGenerator:
    HEADERS = [
        "Relative Path",
        "Kind",
        "State",
        "Trash Path",
        "Notes",
    ]

    def write_session_report(self, session: ReviewSession, output_csv: Path):
        """One row per diffed file, in diff order."""
        failures = {f.relative_path: f for f in session.failures}

        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)

            for item in session.items:
                key = item.relative_path
                state = session.states[key]
                trash_path = session.trash_paths.get(key)
                notes = ""
                if key in failures:
                    notes = f"{failures[key].stage} failed: {failures[key].message}"
                elif key in session.deferred_reasons:
                    notes = f"deferred: {session.deferred_reasons[key]}"

                state_label = state.value
                if session.dry_run and state is ItemState.TRASHED:
                    state_label = "planned trash"
                    notes = "dry run: nothing was moved"

                writer.writerow([
                    key,
                    item.kind.value,
                    state_label,
                    str(trash_path) if trash_path else "",
                    notes,
                ])

        logging.info(f"Report complete: {output_csv} ({len(session.items)} files)")


def log_summary(summary: SessionSummary):
    if summary.dry_run:
        logging.info("Dry run completed. Nothing was moved. Summary:")
        logging.info(f"  - {summary.trashed} files would be moved to trash")
    else:
        logging.info("Sync completed. Summary:")
        logging.info(f"  - {summary.trashed} files moved to trash")
    logging.info(f"  - {summary.kept} files kept in backup")
    logging.info(f"  - {summary.skipped} files skipped")
    logging.info(f"  - {summary.pending} files still pending")
    if summary.failed:
        logging.info(f"  - {summary.failed} files copied to trash but not deleted")
    for failure in summary.failures:
        logging.error(f"  ! {failure.relative_path} ({failure.stage}): {failure.message}")

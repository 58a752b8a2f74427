# trip_timeline/api/overlap_layout.py
"""Side-by-side column layout for entries that overlap in time."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List

from trip_timeline.api.models import Entry, LayoutEntry, LayoutResult

logger = logging.getLogger(__name__)


def compute_overlap_layout(entries: Iterable[LayoutEntry]) -> List[LayoutResult]:
    """Assign every entry a column so that no two entries in a column overlap.

    Entries are grouped into clusters of transitively overlapping entries;
    an entry that starts exactly when the cluster ends begins a new cluster.
    Inside a cluster each entry goes into the first column whose last entry
    has already ended, which uses exactly as many columns as the cluster's
    peak concurrency. ``total_columns`` is per cluster.
    """
    # sorted() is stable: identical (start, end) pairs keep their input order.
    ordered = sorted(entries, key=lambda e: (e.start_minutes, e.end_minutes))
    if not ordered:
        return []

    clusters: List[List[LayoutEntry]] = []
    current = [ordered[0]]
    cluster_end = ordered[0].end_minutes
    for entry in ordered[1:]:
        if entry.start_minutes < cluster_end:
            current.append(entry)
            cluster_end = max(cluster_end, entry.end_minutes)
        else:
            clusters.append(current)
            current = [entry]
            cluster_end = entry.end_minutes
    clusters.append(current)

    results: List[LayoutResult] = []
    for cluster in clusters:
        columns: List[List[LayoutEntry]] = []
        for entry in cluster:
            for column in columns:
                if entry.start_minutes >= column[-1].end_minutes:
                    column.append(entry)
                    break
            else:
                columns.append([entry])

        total = len(columns)
        for index, column in enumerate(columns):
            for entry in column:
                results.append(LayoutResult(entry.id, index, total))

    logger.debug(f"Laid out {len(results)} entries in {len(clusters)} clusters")
    return results


def layout_entries_for_day(entries: Iterable[Entry], day_start: datetime) -> List[LayoutEntry]:
    """Project scheduled entries onto minutes since ``day_start``."""
    layout = []
    for entry in entries:
        if not entry.is_scheduled:
            continue
        start = (entry.start_time - day_start).total_seconds() / 60
        end = (entry.end_time - day_start).total_seconds() / 60
        layout.append(LayoutEntry(entry.id, start, end))
    return layout

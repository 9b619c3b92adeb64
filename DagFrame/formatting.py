"""
Display helpers for debug output.

Tables and arrays get truncated to a few head/tail rows so that a debug
line for a large round stays readable.
"""

from itertools import islice

from numpy import ndarray
from pandas import DataFrame, Series


def _slice_iterable(it, n_head=3, n_tail=2):
    items = list(it)
    if len(items) <= n_head + n_tail:
        return items
    return items[:n_head] + ["..."] + items[-n_tail:]


def _truncate_frame(frame, n_head=3, n_tail=2):
    col_list = list(frame.columns)
    if len(col_list) > 5:
        col_trunc = col_list[:3] + col_list[-2:]
    else:
        col_trunc = col_list

    def rows(start, stop):
        subset = frame.loc[:, col_trunc]
        return [
            dict(zip(col_trunc, row))
            for row in islice(subset.itertuples(index=False, name=None), start, stop)
        ]

    if len(frame) <= n_head + n_tail:
        return rows(0, None)
    return rows(0, n_head) + ["..."] + rows(len(frame) - n_tail, None)


def stringify_truncated(obj, max_len=500):
    """Truncate string representation for display."""
    if isinstance(obj, DataFrame):
        obj = _truncate_frame(obj)
    elif isinstance(obj, ndarray):
        obj = _slice_iterable(obj.flat)
    elif isinstance(obj, Series):
        obj = _slice_iterable(obj.tolist())
    elif isinstance(obj, (set, frozenset)):
        obj = _slice_iterable(obj)

    s = str(obj)
    return s if len(s) <= max_len else s[:max_len] + "..."


def format_round_summary(history, stop_reason=None):
    """
    Build the end-of-run summary lines from the per-round step infos.

    Args:
        history: List of step_info dicts produced by the round loop
        stop_reason: Why the loop stopped ("no_messages" or "max_iter")

    Returns:
        List of lines, without colour codes
    """
    lines = []
    lines.append("=" * 50)
    lines.append("  PREGEL SUMMARY")
    lines.append("=" * 50)
    lines.append(f"    Rounds:           {len(history)}")
    lines.append(f"    Messages:         {sum(info['messages'] for info in history)}")
    lines.append(f"    Checkpoints:      {sum(1 for info in history if info['checkpointed'])}")
    if history:
        per_round = [info["aggregated"] for info in history]
        lines.append(f"    Per-round inbox:  {stringify_truncated(per_round, 80)}")
    if stop_reason:
        lines.append(f"    Stopped by:       {stop_reason}")
    lines.append("=" * 50)
    return lines

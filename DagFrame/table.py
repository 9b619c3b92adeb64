"""
Lazy pandas-backed tables with explicit lineage.

A Table is a deferred computation: every operation returns a new Table
whose thunk recomputes its parents on demand. Nothing runs until count()
or collect() is called. Recomputation cost therefore grows with the
lineage, which is what cache() and checkpointing are for:

    t = Table.from_frame(df).filter(col("x") > 1).with_columns({"y": col("x") * 2})
    t.cache()
    t.count()          # realises and pins the frame
    t.unpersist()      # releases it

Tables are never mutated after construction apart from their cache slot.
"""

import pandas as pd

from .expressions import Expr, as_mask, col


class Table:
    """A deferred DataFrame computation."""

    def __init__(self, compute, lineage_depth=0, name=None):
        self._compute = compute
        self._cached = None
        self._pinned = False
        self.lineage_depth = lineage_depth
        self.name = name
        self.evaluations = 0

    @classmethod
    def from_frame(cls, frame, name=None):
        """Wrap an in-memory DataFrame as a lineage-free table."""
        frame = frame.reset_index(drop=True)
        return cls(lambda: frame, 0, name)

    def __repr__(self):
        state = "cached" if self.is_cached else "lazy"
        return f"Table({self.name or '<anonymous>'}, depth={self.lineage_depth}, {state})"

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def _frame(self):
        if self._cached is not None:
            return self._cached
        self.evaluations += 1
        frame = self._compute()
        if self._pinned:
            self._cached = frame
        return frame

    def _derive(self, compute, *others, name=None):
        depth = 1 + max(t.lineage_depth for t in (self,) + others)
        return Table(compute, depth, name)

    def count(self):
        """Blocking full evaluation; returns the number of rows."""
        return len(self._frame())

    def collect(self):
        """Realise the table into an independent DataFrame."""
        return self._frame().copy()

    @property
    def columns(self):
        return list(self._frame().columns)

    # =========================================================================
    # RESOURCE MANAGEMENT
    # =========================================================================

    def cache(self):
        """Pin the realised frame on next evaluation. Returns self."""
        self._pinned = True
        return self

    def unpersist(self):
        """Release the pinned frame. Returns self."""
        self._pinned = False
        self._cached = None
        return self

    @property
    def is_cached(self):
        return self._cached is not None

    def materialize(self, name=None):
        """Realise now and return a lineage-free copy (in-memory memoization)."""
        return Table.from_frame(self._frame(), name=name or self.name)

    # =========================================================================
    # PROJECTION
    # =========================================================================

    def select(self, *columns):
        """
        Project to the given columns.

        Args:
            *columns: Column names, or Expr values named via alias()
        """
        exprs = [col(c) if isinstance(c, str) else c for c in columns]
        for expr in exprs:
            if not isinstance(expr, Expr) or expr.name is None:
                raise ValueError(f"\033[31mselect() needs column names or aliased expressions, got {expr!r}\033[0m")

        def compute():
            frame = self._frame()
            return pd.DataFrame({e.name: e.evaluate(frame) for e in exprs}, index=frame.index)

        return self._derive(compute)

    def with_columns(self, columns):
        """
        Append (or replace) columns computed from the current row.

        All expressions see the input frame, not each other's output.

        Args:
            columns: Dict or list of (name, Expr) pairs
        """
        pairs = list(columns.items()) if isinstance(columns, dict) else list(columns)

        def compute():
            frame = self._frame()
            values = {name: expr.evaluate(frame) for name, expr in pairs}
            return frame.assign(**values) if values else frame

        return self._derive(compute)

    def prefix(self, namespace):
        """Namespace every column as '<namespace>.<column>'."""
        def compute():
            frame = self._frame()
            return frame.rename(columns={c: f"{namespace}.{c}" for c in frame.columns})

        return self._derive(compute)

    def rename(self, mapping):
        return self._derive(lambda: self._frame().rename(columns=mapping))

    def drop(self, *names):
        return self._derive(lambda: self._frame().drop(columns=list(names)))

    # =========================================================================
    # RELATIONAL OPERATIONS
    # =========================================================================

    def join(self, other, left_on, right_on=None, how="inner"):
        """
        Equality join. Joining on a shared key name keeps a single key column.

        Args:
            other: Right-hand Table
            left_on: Key column on this table
            right_on: Key column on `other` (defaults to left_on)
            how: "inner" or "left"
        """
        if how not in ("inner", "left"):
            raise ValueError(f"\033[31mUnsupported join type: {how}\033[0m")
        right_on = right_on or left_on

        def compute():
            left = self._frame()
            right = other._frame()
            if left_on == right_on:
                merged = left.merge(right, how=how, on=left_on, suffixes=("", "_right"))
            else:
                merged = left.merge(right, how=how, left_on=left_on, right_on=right_on,
                                    suffixes=("", "_right"))
            return merged.reset_index(drop=True)

        return self._derive(compute, other)

    def semi_join(self, other, left_on, right_on=None):
        """Keep rows whose key appears in `other`; no columns are added."""
        right_on = right_on or left_on

        def compute():
            frame = self._frame()
            return frame[frame[left_on].isin(other._frame()[right_on])]

        return self._derive(compute, other)

    def filter(self, predicate):
        """Keep rows where the boolean expression is true (null counts as false)."""
        def compute():
            frame = self._frame()
            return frame[as_mask(predicate.evaluate(frame))]

        return self._derive(compute)

    def union(self, *others):
        """Concatenate tables with identical columns."""
        def compute():
            frames = [self._frame()] + [t._frame() for t in others]
            return pd.concat(frames, ignore_index=True)

        return self._derive(compute, *others)

    def group_agg(self, by, agg, name):
        """
        Group by `by` and reduce with an AggExpr into column `name`.

        Returns one row per distinct key: [by, name].
        """
        return self._derive(lambda: agg.aggregate(self._frame(), by, name))

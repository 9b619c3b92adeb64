"""
Column expressions evaluated against pandas DataFrames.

An expression is an immutable value wrapping a function frame -> Series.
Operators build new expressions, so user code reads like a query:

    when(col("id") < lit(3), lit(42)).otherwise(lit(0))
    coalesce(col("_pregel_msg_"), lit(0.0)) * 0.85 + 0.03

Null semantics follow SQL: arithmetic with null is null, comparisons with
null are false, aggregations skip nulls.

Aggregations (AggExpr) reduce one expression per group:

    sum_(col("_pregel_msg_")).aggregate(frame, by="id", name="total")
"""

import operator

import numpy as np
import pandas as pd


class ExpressionError(KeyError):
    """Raised when an expression references a column the frame does not have."""


def _as_expr(value):
    return value if isinstance(value, Expr) else lit(value)


def _null_series(index):
    return pd.Series(np.nan, index=index, dtype="float64")


def as_mask(series):
    return series.fillna(False).astype(bool)


class Expr:
    """A vectorised column expression."""

    def __init__(self, func, name=None):
        self._func = func
        self.name = name

    def evaluate(self, frame):
        result = self._func(frame)
        if not isinstance(result, pd.Series):
            result = pd.Series(result, index=frame.index)
        return result

    def alias(self, name):
        return Expr(self._func, name)

    def __repr__(self):
        return f"Expr({self.name or '<anonymous>'})"

    # -- arithmetic ----------------------------------------------------------

    def _binary(self, other, op, symbol, reflected=False):
        other = _as_expr(other)
        left, right = (other, self) if reflected else (self, other)

        def evaluate(frame):
            return op(left.evaluate(frame), right.evaluate(frame))

        return Expr(evaluate, f"({left.name} {symbol} {right.name})")

    def __add__(self, other):
        return self._binary(other, operator.add, "+")

    def __radd__(self, other):
        return self._binary(other, operator.add, "+", reflected=True)

    def __sub__(self, other):
        return self._binary(other, operator.sub, "-")

    def __rsub__(self, other):
        return self._binary(other, operator.sub, "-", reflected=True)

    def __mul__(self, other):
        return self._binary(other, operator.mul, "*")

    def __rmul__(self, other):
        return self._binary(other, operator.mul, "*", reflected=True)

    def __truediv__(self, other):
        return self._binary(other, operator.truediv, "/")

    def __rtruediv__(self, other):
        return self._binary(other, operator.truediv, "/", reflected=True)

    def __floordiv__(self, other):
        return self._binary(other, operator.floordiv, "//")

    def __mod__(self, other):
        return self._binary(other, operator.mod, "%")

    def __pow__(self, other):
        return self._binary(other, operator.pow, "**")

    def __neg__(self):
        return Expr(lambda frame: -self.evaluate(frame), f"(-{self.name})")

    # -- comparison ----------------------------------------------------------

    def _compare(self, other, op, symbol):
        other = _as_expr(other)

        def evaluate(frame):
            left = self.evaluate(frame)
            right = other.evaluate(frame)
            known = left.notna() & right.notna()
            return as_mask(op(left, right)) & known

        return Expr(evaluate, f"({self.name} {symbol} {other.name})")

    def __eq__(self, other):
        return self._compare(other, operator.eq, "==")

    def __ne__(self, other):
        return self._compare(other, operator.ne, "!=")

    def __lt__(self, other):
        return self._compare(other, operator.lt, "<")

    def __le__(self, other):
        return self._compare(other, operator.le, "<=")

    def __gt__(self, other):
        return self._compare(other, operator.gt, ">")

    def __ge__(self, other):
        return self._compare(other, operator.ge, ">=")

    __hash__ = None

    # -- boolean -------------------------------------------------------------

    def __and__(self, other):
        other = _as_expr(other)
        return Expr(
            lambda frame: as_mask(self.evaluate(frame)) & as_mask(other.evaluate(frame)),
            f"({self.name} & {other.name})",
        )

    def __or__(self, other):
        other = _as_expr(other)
        return Expr(
            lambda frame: as_mask(self.evaluate(frame)) | as_mask(other.evaluate(frame)),
            f"({self.name} | {other.name})",
        )

    def __invert__(self):
        return Expr(lambda frame: ~as_mask(self.evaluate(frame)), f"(~{self.name})")

    def is_null(self):
        return Expr(lambda frame: self.evaluate(frame).isna(), f"isnull({self.name})")

    def is_not_null(self):
        return Expr(lambda frame: self.evaluate(frame).notna(), f"isnotnull({self.name})")


# =============================================================================
# CONSTRUCTORS
# =============================================================================

def col(name):
    """Reference a column by its flat name (e.g. "rank" or "src.rank")."""
    def evaluate(frame):
        if name not in frame.columns:
            raise ExpressionError(
                f"\033[31mUnknown column '{name}', available: {list(frame.columns)}\033[0m"
            )
        return frame[name]

    return Expr(evaluate, name)


def lit(value):
    """A constant broadcast over every row. lit(None) is a null column."""
    def evaluate(frame):
        if value is None:
            return _null_series(frame.index)
        return pd.Series([value] * len(frame), index=frame.index)

    return Expr(evaluate, repr(value))


class When(Expr):
    """Conditional expression built by when(...).when(...).otherwise(...)."""

    def __init__(self, branches, default=None):
        self._branches = tuple(branches)
        self._default = default
        names = " ".join(f"WHEN {c.name} THEN {v.name}" for c, v in self._branches)
        if default is not None:
            names += f" ELSE {default.name}"
        super().__init__(self._evaluate, f"CASE {names} END")

    def _evaluate(self, frame):
        if self._default is None:
            result = _null_series(frame.index)
        else:
            result = self._default.evaluate(frame)
        for condition, value in reversed(self._branches):
            result = value.evaluate(frame).where(as_mask(condition.evaluate(frame)), result)
        return result

    def when(self, condition, value):
        return When(self._branches + ((condition, _as_expr(value)),), self._default)

    def otherwise(self, value):
        return When(self._branches, _as_expr(value))


def when(condition, value):
    """Start a conditional; rows matching no branch are null unless otherwise() is given."""
    return When([(condition, _as_expr(value))])


def coalesce(*exprs):
    """First non-null value per row."""
    exprs = [_as_expr(e) for e in exprs]

    def evaluate(frame):
        result = exprs[0].evaluate(frame)
        for expr in exprs[1:]:
            result = result.where(result.notna(), expr.evaluate(frame))
        return result

    return Expr(evaluate, f"coalesce({', '.join(str(e.name) for e in exprs)})")


def _row_reduce(exprs, reducer, label):
    exprs = [_as_expr(e) for e in exprs]

    def evaluate(frame):
        columns = pd.concat([e.evaluate(frame) for e in exprs], axis=1, keys=range(len(exprs)))
        return getattr(columns, reducer)(axis=1, skipna=True)

    return Expr(evaluate, f"{label}({', '.join(str(e.name) for e in exprs)})")


def greatest(*exprs):
    """Row-wise maximum, skipping nulls."""
    return _row_reduce(exprs, "max", "greatest")


def least(*exprs):
    """Row-wise minimum, skipping nulls."""
    return _row_reduce(exprs, "min", "least")


def udf(func, *exprs, name=None):
    """Wrap a vectorised function of Series arguments as an expression."""
    exprs = [_as_expr(e) for e in exprs]

    def evaluate(frame):
        return func(*[e.evaluate(frame) for e in exprs])

    return Expr(evaluate, name or getattr(func, "__name__", "udf"))


# =============================================================================
# AGGREGATIONS
# =============================================================================

class AggExpr:
    """Reduces one expression per group."""

    def __init__(self, reducer, expr, name):
        self._reducer = reducer
        self._expr = _as_expr(expr)
        self.name = name

    def aggregate(self, frame, by, name):
        """
        Group `frame` by column `by` and reduce this aggregation's input.

        Returns a DataFrame with columns [by, name], one row per group.
        """
        grouped = pd.DataFrame({by: frame[by], name: self._expr.evaluate(frame)})
        if grouped.empty:
            return grouped.reset_index(drop=True)
        return grouped.groupby(by, sort=False)[name].agg(self._reducer).reset_index()

    def __repr__(self):
        return f"AggExpr({self.name})"


def sum_(expr):
    return AggExpr("sum", expr, f"sum({_as_expr(expr).name})")


def max_(expr):
    return AggExpr("max", expr, f"max({_as_expr(expr).name})")


def min_(expr):
    return AggExpr("min", expr, f"min({_as_expr(expr).name})")


def mean(expr):
    return AggExpr("mean", expr, f"mean({_as_expr(expr).name})")


def count(expr):
    return AggExpr("count", expr, f"count({_as_expr(expr).name})")


def first(expr):
    return AggExpr("first", expr, f"first({_as_expr(expr).name})")


def collect_list(expr):
    return AggExpr(list, expr, f"collect_list({_as_expr(expr).name})")


def agg_udf(func, expr, name=None):
    """Aggregate with an arbitrary function of the group's Series."""
    return AggExpr(func, expr, name or getattr(func, "__name__", "agg_udf"))

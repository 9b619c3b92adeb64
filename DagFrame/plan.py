"""
Pregel plan: what to compute, independent of how rounds are driven.

A PlanBuilder accumulates vertex columns, message definitions and the
message aggregation through fluent calls. freeze() validates everything
at once and snapshots it into an immutable PregelPlan; the engine only
ever sees the frozen plan.

    plan = (PlanBuilder()
            .set_max_iter(5)
            .with_vertex_column("rank", lit(0.2), coalesce(msg, lit(0.0)) * 0.85 + 0.03)
            .send_msg_to_dst(src("rank") / src("outDegree"))
            .agg_msgs(sum_(msg))
            .freeze())
"""

from collections import namedtuple
from numbers import Integral

from .expressions import AggExpr, Expr, col, lit
from .graph import DST, ID, SRC

# Reserved name of the generated / aggregated message column.
MSG_COL_NAME = "_pregel_msg_"

DEFAULT_MAX_ITER = 10
DEFAULT_CHECKPOINT_INTERVAL = 2

TO_SRC = "src"
TO_DST = "dst"


class PregelConfigError(ValueError):
    """Raised for an invalid Pregel configuration, always before any round runs."""


ColumnSpec = namedtuple("ColumnSpec", ["name", "init_expr", "update_expr"])

# source / destination are the id expressions of the sending and receiving vertex.
MessageSpec = namedtuple("MessageSpec", ["direction", "source", "destination", "payload"])

PregelPlan = namedtuple("PregelPlan", ["columns", "messages", "agg_expr", "max_iter", "checkpoint_interval"])


def _fail(message):
    raise PregelConfigError(f"\033[31m{message}\033[0m")


def _as_expr(value, what):
    if value is None:
        _fail(f"{what} must not be None")
    return value if isinstance(value, Expr) else lit(value)


def message_to_src(payload):
    """Message from the edge's dst vertex to its src vertex."""
    return MessageSpec(TO_SRC, col(f"{DST}.{ID}"), col(f"{SRC}.{ID}"), payload)


def message_to_dst(payload):
    """Message from the edge's src vertex to its dst vertex."""
    return MessageSpec(TO_DST, col(f"{SRC}.{ID}"), col(f"{DST}.{ID}"), payload)


class PlanBuilder:
    """Mutable accumulation of a Pregel plan. Every setter returns the builder."""

    def __init__(self, max_iter=DEFAULT_MAX_ITER, checkpoint_interval=DEFAULT_CHECKPOINT_INTERVAL):
        self.max_iter = max_iter
        self.checkpoint_interval = checkpoint_interval
        self.columns = []
        self.messages = []
        self.agg_expr = None

    def copy(self):
        clone = PlanBuilder(self.max_iter, self.checkpoint_interval)
        clone.columns = list(self.columns)
        clone.messages = list(self.messages)
        clone.agg_expr = self.agg_expr
        return clone

    def set_max_iter(self, value):
        """Maximum number of rounds (default 10); must be >= 1 at run time."""
        self.max_iter = value
        return self

    def set_checkpoint_interval(self, value):
        """
        Rounds between two checkpoints (default 2); 0 disables checkpointing.

        Must be >= 0 at run time.
        """
        self.checkpoint_interval = value
        return self

    def with_vertex_column(self, name, init_expr, update_expr):
        """
        Add a vertex column computed at start and recomputed after every round.

        Args:
            name: New column name; not the id column nor the message column
            init_expr: Expression over the original vertex columns
            update_expr: Expression over original columns, additional columns
                and the aggregated message column (null when nothing arrived)
        """
        if name is None or name == ID or name == MSG_COL_NAME:
            _fail(f"Additional column name cannot be None, '{ID}' or '{MSG_COL_NAME}', got {name!r}")
        init_expr = _as_expr(init_expr, f"Initial expression of column '{name}'")
        update_expr = _as_expr(update_expr, f"Update expression of column '{name}'")
        self.columns.append(ColumnSpec(name, init_expr, update_expr))
        return self

    def send_msg_to_src(self, payload):
        """Send `payload` (evaluated per src/edge/dst triplet) to the src vertex."""
        self.messages.append(message_to_src(_as_expr(payload, "Message expression")))
        return self

    def send_msg_to_dst(self, payload):
        """Send `payload` (evaluated per src/edge/dst triplet) to the dst vertex."""
        self.messages.append(message_to_dst(_as_expr(payload, "Message expression")))
        return self

    def agg_msgs(self, agg_expr):
        """Set how messages for one vertex combine; the last call wins."""
        self.agg_expr = agg_expr
        return self

    def freeze(self, vertex_columns=None):
        """
        Validate and snapshot into an immutable PregelPlan.

        Args:
            vertex_columns: Original vertex column names, to reject clashes

        Raises:
            PregelConfigError: on the first violated precondition
        """
        if not self.messages:
            _fail("At least one message expression is required (send_msg_to_src / send_msg_to_dst)")
        if self.agg_expr is None:
            _fail("A message aggregation is required (agg_msgs)")
        if not isinstance(self.agg_expr, AggExpr):
            _fail(f"Message aggregation must be an aggregate expression, got {self.agg_expr!r}")
        if isinstance(self.max_iter, bool) or not isinstance(self.max_iter, Integral) or self.max_iter < 1:
            _fail(f"The max iteration number should be >= 1, got {self.max_iter!r}")
        if (isinstance(self.checkpoint_interval, bool) or not isinstance(self.checkpoint_interval, Integral)
                or self.checkpoint_interval < 0):
            _fail(f"The checkpoint interval should be >= 0 (0 disables checkpoints), got {self.checkpoint_interval!r}")
        if not self.columns:
            _fail("At least one additional vertex column is required (with_vertex_column)")

        names = [column.name for column in self.columns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            _fail(f"Additional vertex columns defined more than once: {duplicates}")
        if vertex_columns is not None:
            if MSG_COL_NAME in vertex_columns:
                _fail(f"Vertex frame must not contain the reserved column '{MSG_COL_NAME}'")
            clashes = [n for n in names if n in vertex_columns]
            if clashes:
                _fail(f"Additional vertex columns already exist on the vertices: {clashes}")

        return PregelPlan(
            columns=tuple(self.columns),
            messages=tuple(self.messages),
            agg_expr=self.agg_expr,
            max_iter=int(self.max_iter),
            checkpoint_interval=int(self.checkpoint_interval),
        )

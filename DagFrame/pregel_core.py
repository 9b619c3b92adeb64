"""
Pregel BSP (Bulk Synchronous Parallel) over DataFrames.

Vertex state lives in additional vertex columns. Each round (superstep):
  1. join vertices to both ends of every edge (triplets)
  2. evaluate every message definition per triplet
  3. keep messages whose sender received something last round
  4. drop null messages, aggregate the rest per receiving vertex
  5. recompute the additional columns from the aggregated message
The loop stops after max_iter rounds, or right after the first round in
which no vertex received a message.

Two styles, same engine:

Functional (returns new state each call):
    p = pregel(graph, debug=False)
    p = set_max_iter(p, 5)
    p = with_vertex_column(p, "rank", lit(0.2), coalesce(msg, lit(0.0)) * 0.85 + 0.03)
    p = send_msg_to_dst(p, src("rank") / src("outDegree"))
    p = agg_msgs(p, sum_(msg))
    ranks = run(p)

Fluent wrapper:
    ranks = (Pregel(graph, debug=False)
             .set_max_iter(5)
             .with_vertex_column("rank", lit(0.2), coalesce(msg, lit(0.0)) * 0.85 + 0.03)
             .send_msg_to_dst(src("rank") / src("outDegree"))
             .agg_msgs(sum_(msg))
             .run())
"""

from collections import namedtuple

from .checkpoint import CheckpointPolicy, CheckpointStore
from .expressions import col
from .formatting import format_round_summary, stringify_truncated
from .graph import DST, EDGE, ID, SRC
from .plan import (
    DEFAULT_CHECKPOINT_INTERVAL,
    DEFAULT_MAX_ITER,
    MSG_COL_NAME,
    TO_DST,
    TO_SRC,
    PlanBuilder,
    PregelConfigError,
)

# Sender id of a generated message, used for active-vertex gating.
MSG_SRC_COL = "_pregel_msg_src_"

STOP_NO_MESSAGES = "no_messages"
STOP_MAX_ITER = "max_iter"


# =============================================================================
# COLUMN REFERENCES
# =============================================================================

msg = col(MSG_COL_NAME)


def src(name):
    """Source-vertex column of a triplet, for message expressions."""
    return col(f"{SRC}.{name}")


def dst(name):
    """Destination-vertex column of a triplet, for message expressions."""
    return col(f"{DST}.{name}")


def edge(name):
    """Edge column of a triplet, for message expressions."""
    return col(f"{EDGE}.{name}")


# =============================================================================
# ROUND STATE
# =============================================================================

# vertices:            original columns + additional columns, input of the next round
# vertex_updates:      id + additional columns produced by the round (cached)
# aggregated_messages: [id, msg] produced by the round (cached)
RoundState = namedtuple("RoundState", ["superstep", "vertices", "vertex_updates", "aggregated_messages"])


class PregelEngine:
    """
    Drives the round protocol for one frozen plan on one graph.

    Holds no state between runs beyond the plan and graph references.
    """

    def __init__(self, plan, graph, debug=False, checkpoint_dir=None):
        self.plan = plan
        self.graph = graph
        self.debug = debug
        self.checkpoint_dir = checkpoint_dir
        self.policy = CheckpointPolicy(plan.checkpoint_interval)

    def run(self):
        """Run to completion and return the final vertex DataFrame."""
        runner = RoundRunner(self)
        for _ in runner:
            pass
        return runner.result

    def iterate_rounds(self):
        """Iterator of per-round step_info dicts; see RoundRunner."""
        return RoundRunner(self)

    # -- round steps ----------------------------------------------------------

    def initial_state(self):
        init_columns = [(column.name, column.init_expr) for column in self.plan.columns]
        vertices = self.graph.vertex_table.with_columns(init_columns)
        return RoundState(0, vertices, None, None)

    def generate_messages(self, vertices):
        """[msg_src, id, msg] for every triplet and message definition."""
        triplets = self.graph.triplet_table(vertices).cache()
        streams = [
            triplets.select(
                message.source.alias(MSG_SRC_COL),
                message.destination.alias(ID),
                message.payload.alias(MSG_COL_NAME),
            )
            for message in self.plan.messages
        ]
        return triplets, streams[0].union(*streams[1:])

    def gate_messages(self, messages, previous_aggregated):
        """Only vertices that received a message last round may send (all may in round 1)."""
        if previous_aggregated is None:
            return messages
        return messages.semi_join(previous_aggregated, MSG_SRC_COL, ID)

    def drop_null_messages(self, messages):
        return messages.filter(msg.is_not_null())

    def aggregate_messages(self, messages):
        """[id, msg], one row per vertex that received at least one message."""
        return messages.group_agg(ID, self.plan.agg_expr, MSG_COL_NAME)

    def update_vertices(self, vertices, aggregated):
        """id + recomputed additional columns; vertices without messages see msg = null."""
        with_msg = vertices.join(aggregated, ID, how="left")
        updates = [column.update_expr.alias(column.name) for column in self.plan.columns]
        return with_msg.select(col(ID), *updates)

    def rebuild_vertices(self, vertex_updates):
        return self.graph.vertex_table.join(vertex_updates, ID)


class RoundRunner:
    """
    Iterator over the rounds of one run.

    Each next() executes a full round and returns its step_info:
        superstep, active_vertices, messages, aggregated,
        checkpointed, lineage_depth, final
    After exhaustion `result` holds the final vertex DataFrame and
    `stop_reason` says why the loop ended.
    """

    def __init__(self, engine):
        self.engine = engine
        self.plan = engine.plan
        self.debug = engine.debug
        self.store = CheckpointStore(engine.checkpoint_dir, debug=engine.debug)
        self.state = None
        self.history = []
        self.result = None
        self.stop_reason = None
        self._done = False

    def __iter__(self):
        return self

    def __next__(self):
        if self._done:
            raise StopIteration
        if self.state is None:
            self._start()
        try:
            step_info = self._round(self.state.superstep + 1)
        except BaseException:
            self._release()
            self._done = True
            raise
        self.history.append(step_info)
        if step_info["final"]:
            self._finish()
        return step_info

    def close(self):
        """Stop early: release cached tables and checkpoints. No-op once finished."""
        if not self._done:
            self._release()
            self._done = True

    def _start(self):
        if self.debug:
            print(f"\033[36m\n[START] Beginning Pregel execution: max_iter={self.plan.max_iter}, "
                  f"checkpoint_interval={self.plan.checkpoint_interval}\033[0m")
        self.state = self.engine.initial_state()
        if self.debug:
            names = [column.name for column in self.plan.columns]
            print(f"\033[36m[INIT] Initialised columns {names}\033[0m")

    def _round(self, superstep):
        engine = self.engine
        previous = self.state

        if self.debug:
            print(f"\033[35m[ROUND] Superstep {superstep}\033[0m")

        triplets, messages = engine.generate_messages(previous.vertices)
        gated = engine.gate_messages(messages, previous.aggregated_messages)
        delivered = engine.drop_null_messages(gated).cache()
        num_messages = delivered.count()
        aggregated = engine.aggregate_messages(delivered).cache()
        num_aggregated = aggregated.count()
        delivered.unpersist()
        triplets.unpersist()

        if previous.aggregated_messages is None:
            active_vertices = self.engine.graph.num_vertices
        else:
            active_vertices = previous.aggregated_messages.count()
            previous.aggregated_messages.unpersist()

        if self.debug:
            print(f"\033[35m[AGGREGATE] {num_aggregated} vertices received messages "
                  f"({active_vertices} were active): {stringify_truncated(aggregated.collect())}\033[0m")

        no_messages = num_aggregated == 0
        final = no_messages or superstep >= self.plan.max_iter

        vertex_updates = engine.update_vertices(previous.vertices, aggregated)
        checkpointed = engine.policy.should_checkpoint(superstep)
        if checkpointed:
            vertex_updates = self.store.checkpoint(vertex_updates, superstep)
            # next round's gating reads these; cut their lineage too
            memoized = aggregated.materialize(name=f"aggregated_{superstep}")
            aggregated.unpersist()
            aggregated = memoized
        vertex_updates.cache()
        vertex_updates.count()

        if previous.vertex_updates is not None:
            previous.vertex_updates.unpersist()
            if self.debug:
                print(f"\033[33m[RELEASE] Released vertex updates of superstep {previous.superstep}\033[0m")

        if self.debug:
            print(f"\033[32m[UPDATE] {stringify_truncated(vertex_updates.collect())}\033[0m")

        vertices = engine.rebuild_vertices(vertex_updates)
        self.state = RoundState(superstep, vertices, vertex_updates, aggregated)

        if final:
            self.stop_reason = STOP_NO_MESSAGES if no_messages else STOP_MAX_ITER
            if self.debug:
                if no_messages:
                    print(f"\033[36m[TERMINATE] No messages at superstep {superstep}\033[0m")
                else:
                    print(f"\033[36m[TERMINATE] Reached max_iter={self.plan.max_iter}\033[0m")

        return {
            "superstep": superstep,
            "active_vertices": active_vertices,
            "messages": num_messages,
            "aggregated": num_aggregated,
            "checkpointed": checkpointed,
            "lineage_depth": vertex_updates.lineage_depth,
            "final": final,
        }

    def _finish(self):
        self.result = self.state.vertices.collect()
        self._release()
        self._done = True
        if self.debug:
            print(f"\033[36m[COMPLETE] Finished after {len(self.history)} supersteps\033[0m")
            for line in format_round_summary(self.history, self.stop_reason):
                print(f"\033[34m{line}\033[0m")
            print(f"\033[36m[FINAL STATE] {stringify_truncated(self.result)}\033[0m")

    def _release(self):
        if self.state is not None:
            if self.state.vertex_updates is not None:
                self.state.vertex_updates.unpersist()
            if self.state.aggregated_messages is not None:
                self.state.aggregated_messages.unpersist()
        self.store.close()


# =============================================================================
# FUNCTIONAL API
# =============================================================================

def pregel(graph, debug=True, max_iter=DEFAULT_MAX_ITER,
           checkpoint_interval=DEFAULT_CHECKPOINT_INTERVAL, checkpoint_dir=None):
    """
    Create a new Pregel computation state for `graph`.

    All operations return new state rather than mutating, except run() and
    iterate_rounds(), which record the run history and stop reason on the
    state they were given.
    """
    if debug:
        print(f"\033[36m[INIT] Pregel executor initialized on {graph!r}\033[0m")

    return {
        "type": "Pregel",
        "graph": graph,
        "builder": PlanBuilder(max_iter, checkpoint_interval),
        "debug": debug,
        "checkpoint_dir": checkpoint_dir,
        "history": [],
        "stop_reason": None,
    }


def _with_builder(p, update):
    builder = p["builder"].copy()
    update(builder)
    return {**p, "builder": builder}


def set_max_iter(p, value):
    """Set the maximum number of rounds (>= 1, default 10)."""
    return _with_builder(p, lambda b: b.set_max_iter(value))


def set_checkpoint_interval(p, value):
    """Set rounds between checkpoints (>= 0, default 2; 0 disables)."""
    return _with_builder(p, lambda b: b.set_checkpoint_interval(value))


def with_vertex_column(p, name, init_expr, update_expr):
    """
    Add an additional vertex column.

    Args:
        p: Pregel state
        name: Column name (not "id", not the message column)
        init_expr: Initial value, over original vertex columns
        update_expr: Value after each round, over vertex columns and `msg`

    Returns:
        New Pregel state with the column registered
    """
    new_p = _with_builder(p, lambda b: b.with_vertex_column(name, init_expr, update_expr))
    if p["debug"]:
        print(f"\033[36m[REGISTER] Vertex column '{name}': init={init_expr!r}, update={update_expr!r}\033[0m")
    return new_p


def send_msg_to_src(p, payload):
    """Register a message to the source vertex of every triplet."""
    new_p = _with_builder(p, lambda b: b.send_msg_to_src(payload))
    if p["debug"]:
        print(f"\033[36m[REGISTER] Message to {TO_SRC}: {payload!r}\033[0m")
    return new_p


def send_msg_to_dst(p, payload):
    """Register a message to the destination vertex of every triplet."""
    new_p = _with_builder(p, lambda b: b.send_msg_to_dst(payload))
    if p["debug"]:
        print(f"\033[36m[REGISTER] Message to {TO_DST}: {payload!r}\033[0m")
    return new_p


def agg_msgs(p, agg_expr):
    """Set the message aggregation (last call wins)."""
    new_p = _with_builder(p, lambda b: b.agg_msgs(agg_expr))
    if p["debug"]:
        print(f"\033[36m[REGISTER] Aggregation: {agg_expr!r}\033[0m")
    return new_p


def freeze(p):
    """Validate the state and return its immutable PregelPlan."""
    return p["builder"].freeze(p["graph"].vertex_columns)


def _engine(p):
    plan = freeze(p)
    if p["debug"]:
        print(f"\033[35m[PLAN] {len(plan.columns)} column(s), {len(plan.messages)} message(s), "
              f"aggregation={plan.agg_expr!r}\033[0m")
    return PregelEngine(plan, p["graph"], debug=p["debug"], checkpoint_dir=p["checkpoint_dir"])


def iterate_rounds(p):
    """
    Run round by round, yielding each round's step_info.

    Validation happens when iteration starts, before the first round runs.
    The history is recorded on `p`. Closing the generator before the last
    round releases the run's tables and checkpoints.
    """
    runner = _engine(p).iterate_rounds()
    p["history"] = runner.history
    try:
        for step_info in runner:
            p["stop_reason"] = runner.stop_reason
            yield step_info
    finally:
        runner.close()


def run(p):
    """
    Run the Pregel computation to completion.

    Returns:
        DataFrame of the final vertices: original columns + additional columns

    Raises:
        PregelConfigError: before any round, if the configuration is invalid
    """
    runner = _engine(p).iterate_rounds()
    p["history"] = runner.history
    for _ in runner:
        pass
    p["stop_reason"] = runner.stop_reason
    return runner.result


def get_history(p):
    """Step infos of the last run on this state."""
    return p["history"]


# =============================================================================
# OOP WRAPPER CLASS
# =============================================================================

class Pregel:
    """
    Fluent wrapper over the functional API:

        result = (Pregel(graph, debug=False)
                  .with_vertex_column("value", init, update)
                  .send_msg_to_dst(Pregel.src("value"))
                  .agg_msgs(sum_(Pregel.msg))
                  .run())
    """

    msg = msg
    src = staticmethod(src)
    dst = staticmethod(dst)
    edge = staticmethod(edge)

    def __init__(self, graph, debug=True, max_iter=DEFAULT_MAX_ITER,
                 checkpoint_interval=DEFAULT_CHECKPOINT_INTERVAL, checkpoint_dir=None):
        self._p = pregel(graph, debug=debug, max_iter=max_iter,
                         checkpoint_interval=checkpoint_interval, checkpoint_dir=checkpoint_dir)

    def set_max_iter(self, value):
        self._p = set_max_iter(self._p, value)
        return self

    def set_checkpoint_interval(self, value):
        self._p = set_checkpoint_interval(self._p, value)
        return self

    def with_vertex_column(self, name, init_expr, update_expr):
        self._p = with_vertex_column(self._p, name, init_expr, update_expr)
        return self

    def send_msg_to_src(self, payload):
        self._p = send_msg_to_src(self._p, payload)
        return self

    def send_msg_to_dst(self, payload):
        self._p = send_msg_to_dst(self._p, payload)
        return self

    def agg_msgs(self, agg_expr):
        self._p = agg_msgs(self._p, agg_expr)
        return self

    def run(self):
        return run(self._p)

    def iterate_rounds(self):
        return iterate_rounds(self._p)

    @property
    def plan(self):
        return freeze(self._p)

    @property
    def history(self):
        return get_history(self._p)

    @property
    def stop_reason(self):
        return self._p["stop_reason"]

    @property
    def graph(self):
        return self._p["graph"]

    @property
    def max_iter(self):
        return self._p["builder"].max_iter

    @property
    def checkpoint_interval(self):
        return self._p["builder"].checkpoint_interval

    @property
    def debug(self):
        return self._p["debug"]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def create_pregel_from_config(graph, config, debug=True):
    """
    Create a Pregel computation from a configuration dict.

    Config keys:
        max_iter, checkpoint_interval, checkpoint_dir (optional)
        columns:  [{"name", "init", "update"}, ...]
        messages: [{"to": "src" | "dst", "expr"}, ...]
        agg:      aggregate expression
    """
    p = Pregel(
        graph,
        debug=debug,
        max_iter=config.get("max_iter", DEFAULT_MAX_ITER),
        checkpoint_interval=config.get("checkpoint_interval", DEFAULT_CHECKPOINT_INTERVAL),
        checkpoint_dir=config.get("checkpoint_dir"),
    )

    for column_config in config.get("columns", []):
        p.with_vertex_column(column_config["name"], column_config.get("init"), column_config.get("update"))

    for message_config in config.get("messages", []):
        direction = message_config.get("to", TO_DST)
        if direction == TO_SRC:
            p.send_msg_to_src(message_config.get("expr"))
        elif direction == TO_DST:
            p.send_msg_to_dst(message_config.get("expr"))
        else:
            raise PregelConfigError(f"\033[31mUnknown message direction: {direction}\033[0m")

    if "agg" in config:
        p.agg_msgs(config["agg"])

    return p


def run_pregel_from_config(graph, config, debug=True):
    """Create and run a Pregel computation from a configuration dict."""
    return create_pregel_from_config(graph, config, debug=debug).run()

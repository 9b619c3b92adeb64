__version__ = "0.2.0"

from .pregel_core import (
    Pregel,
    PregelEngine,
    RoundState,
    pregel,
    set_max_iter,
    set_checkpoint_interval,
    with_vertex_column,
    send_msg_to_src,
    send_msg_to_dst,
    agg_msgs,
    run,
    iterate_rounds,
    create_pregel_from_config,
    run_pregel_from_config,
    msg,
    src,
    dst,
    edge,
)
from .plan import (
    MSG_COL_NAME,
    ColumnSpec,
    MessageSpec,
    PlanBuilder,
    PregelConfigError,
    PregelPlan,
)
from .graph import GraphFrame, GraphSchemaError, ID, SRC, DST, EDGE
from .expressions import (
    Expr,
    ExpressionError,
    col,
    lit,
    when,
    coalesce,
    greatest,
    least,
    udf,
    sum_,
    max_,
    min_,
    mean,
    count,
    first,
    collect_list,
    agg_udf,
)
from .table import Table
from .checkpoint import CheckpointPolicy, CheckpointStore

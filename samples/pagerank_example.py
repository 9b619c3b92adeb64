"""
PageRank - Lisp-like Functional Style

Rank-style aggregation with the Pregel BSP model over DataFrames.

Architecture:
- Each vertex carries a `rank` column, initialised to 1/N
- Every round each vertex sends rank / outDegree along its out-edges
- Contributions are summed per receiving vertex
- New rank = 0.85 * contributions + 0.15 / N

Graph structure (5 vertices):
    0 -> 1
    1 -> 2
    2 -> 4, 0
    3 -> 4
    4 -> 3, 0, 2

Usage:
    python samples/pagerank_example.py
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from DagFrame import GraphFrame, coalesce, lit, sum_
from DagFrame.pregel_core import (
    pregel, set_max_iter, with_vertex_column, send_msg_to_dst, agg_msgs, run,
    msg, src
)


EDGES = [(0, 1), (1, 2), (2, 4), (2, 0), (3, 4), (4, 3), (4, 0), (4, 2)]
DAMPING = 0.85
MAX_ITERATIONS = 5
EXPECTED = {0: 0.209, 1: 0.200, 2: 0.266, 3: 0.089, 4: 0.234}


def create_pagerank_graph():
    """Vertices carry their out-degree so messages can split the rank."""
    edges = pd.DataFrame(EDGES, columns=["src", "dst"])
    vertices = GraphFrame.from_edges(edges).out_degrees
    return GraphFrame(vertices, edges)


def create_pagerank(graph, debug=True, max_iter=MAX_ITERATIONS):
    """Build the PageRank computation using functional composition."""
    n = graph.num_vertices
    p = pregel(graph, debug=debug)
    p = set_max_iter(p, max_iter)
    p = with_vertex_column(p, "rank", lit(1.0 / n),
                           coalesce(msg, lit(0.0)) * DAMPING + (1 - DAMPING) / n)
    p = send_msg_to_dst(p, src("rank") / src("outDegree"))
    p = agg_msgs(p, sum_(msg))
    return p


def run_pagerank(debug=True):
    print("\033[36m" + "=" * 60 + "\033[0m")
    print("\033[36m    PAGERANK - LISP-LIKE FUNCTIONAL STYLE\033[0m")
    print("\033[36m" + "=" * 60 + "\033[0m\n")

    print("Graph structure:")
    for s, d in EDGES:
        print(f"  {s} -> {d}")
    print()

    graph = create_pagerank_graph()
    p = create_pagerank(graph, debug=debug)
    result = run(p)
    ranks = dict(zip(result["id"], result["rank"]))

    print("\n\033[36m" + "=" * 60 + "\033[0m")
    print("\033[32m    RESULTS\033[0m")
    print(f"\033[35m    Supersteps: {len(p['history'])}\033[0m")
    print(f"\033[35m    Stop reason: {p['stop_reason']}\033[0m")
    print("\033[36m" + "=" * 60 + "\033[0m")

    print("\nFinal PageRanks:")
    for v in sorted(ranks, key=lambda x: ranks[x], reverse=True):
        bar = "#" * int(ranks[v] * 50)
        print(f"  {v}: {ranks[v]:.4f} {bar}")

    return ranks


def main():
    print("\n" + "=" * 70)
    print("  PAGERANK TEST")
    print("=" * 70 + "\n")

    ranks = run_pagerank(debug=True)

    print("\n\033[36m--- VERIFICATION ---\033[0m")

    total = sum(ranks.values())
    sums_to_one = abs(total - 1.0) < 1e-6
    print(f"[{'OK' if sums_to_one else 'FAIL'}] Ranks sum to {total:.6f}")

    matches = all(abs(ranks[v] - EXPECTED[v]) < 1e-3 for v in EXPECTED)
    print(f"[{'OK' if matches else 'FAIL'}] Ranks match expected values after {MAX_ITERATIONS} rounds")

    if sums_to_one and matches:
        print("\n\033[32m[ALL CHECKS PASSED]\033[0m")
    else:
        print("\n\033[31m[SOME CHECKS FAILED]\033[0m")


if __name__ == "__main__":
    main()

"""
Maximum Value Example - Fluent Style

The Maximum Value algorithm from the original Pregel paper: every vertex
ends up holding the largest value in its connected component.

A vertex only sends when its value differs from its neighbour's, so the
set of active vertices shrinks as the maximum settles and the run stops
early once nothing changes.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from DagFrame import GraphFrame, Pregel, col, greatest, max_, when


def run_maximum_value_example(debug=True):
    print("\033[36m=== PREGEL MAXIMUM VALUE EXAMPLE ===\033[0m")
    print("This implements the Maximum Value algorithm from the original Pregel paper")
    print("Each vertex propagates the maximum value it has seen to its neighbors\n")

    # Graph structure (both directions on every edge):
    #   1 -- 2
    #   |    |
    #   3 -- 4
    vertices = pd.DataFrame({"id": [1, 2, 3, 4], "initial": [3, 6, 2, 1]})
    links = [(1, 2), (1, 3), (2, 4), (3, 4)]
    edges = pd.DataFrame(links + [(d, s) for s, d in links], columns=["src", "dst"])
    graph = GraphFrame(vertices, edges)

    p = (Pregel(graph, debug=debug, max_iter=10)
         .with_vertex_column("value", col("initial"), greatest(Pregel.msg, col("value")))
         .send_msg_to_dst(when(Pregel.src("value") > Pregel.dst("value"), Pregel.src("value")))
         .agg_msgs(max_(Pregel.msg)))
    result = p.run()

    print("\n\033[36m=== RESULTS ===\033[0m")
    for _, row in result.sort_values("id").iterrows():
        print(f"  Vertex {row['id']}: {row['initial']} -> {row['value']}")
    print(f"\033[35m  Supersteps: {len(p.history)} ({p.stop_reason})\033[0m")

    return result, p


def main():
    result, p = run_maximum_value_example(debug=True)

    print("\n\033[36m--- VERIFICATION ---\033[0m")
    all_max = (result["value"] == 6).all()
    print(f"[{'OK' if all_max else 'FAIL'}] Every vertex holds the maximum value 6")
    stopped_early = len(p.history) < p.max_iter
    print(f"[{'OK' if stopped_early else 'FAIL'}] Stopped before max_iter ({len(p.history)} < {p.max_iter})")

    if all_max and stopped_early:
        print("\n\033[32m[ALL CHECKS PASSED]\033[0m")
    else:
        print("\n\033[31m[SOME CHECKS FAILED]\033[0m")


if __name__ == "__main__":
    main()

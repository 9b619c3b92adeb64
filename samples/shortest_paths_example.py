"""
Shortest Paths Example - Config Style

Single-source hop distance. The landmark starts at distance 0 and every
other vertex at null. A vertex offers `distance + 1` to a neighbour only
when that improves the neighbour's distance; offers are combined with min
and the new distance is least(offer, current).

Built from a configuration dict with run_pregel_from_config.

Graph structure:
    A -> B -> C -> D
    A -> E -> D
    F -> A          (F is unreachable from A)
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from DagFrame import GraphFrame, col, least, lit, min_, when
from DagFrame.pregel_core import run_pregel_from_config, msg, src, dst


LANDMARK = "A"
EXPECTED = {"A": 0, "B": 1, "C": 2, "D": 2, "E": 1}


def create_graph():
    vertices = pd.DataFrame({"id": ["A", "B", "C", "D", "E", "F"]})
    edges = pd.DataFrame(
        [("A", "B"), ("B", "C"), ("C", "D"), ("A", "E"), ("E", "D"), ("F", "A")],
        columns=["src", "dst"],
    )
    return GraphFrame(vertices, edges)


def shortest_paths_config(landmark=LANDMARK):
    offer = src("distance") + 1
    return {
        "max_iter": 10,
        "checkpoint_interval": 2,
        "columns": [{
            "name": "distance",
            "init": when(col("id") == landmark, lit(0)),
            "update": least(msg, col("distance")),
        }],
        "messages": [{
            "to": "dst",
            "expr": when(dst("distance").is_null() | (offer < dst("distance")), offer),
        }],
        "agg": min_(msg),
    }


def run_shortest_paths_example(debug=True):
    print("\033[36m=== PREGEL SHORTEST PATHS EXAMPLE ===\033[0m")
    print(f"Hop distance from landmark {LANDMARK}\n")

    result = run_pregel_from_config(create_graph(), shortest_paths_config(), debug=debug)

    print("\n\033[36m=== RESULTS ===\033[0m")
    for _, row in result.iterrows():
        distance = "unreachable" if pd.isna(row["distance"]) else int(row["distance"])
        print(f"  {row['id']}: {distance}")

    return result


def main():
    result = run_shortest_paths_example(debug=True)
    distances = dict(zip(result["id"], result["distance"]))

    print("\n\033[36m--- VERIFICATION ---\033[0m")
    reachable_ok = all(distances[v] == d for v, d in EXPECTED.items())
    print(f"[{'OK' if reachable_ok else 'FAIL'}] Reachable distances: {EXPECTED}")
    unreachable_ok = pd.isna(distances["F"])
    print(f"[{'OK' if unreachable_ok else 'FAIL'}] F is unreachable")

    if reachable_ok and unreachable_ok:
        print("\n\033[32m[ALL CHECKS PASSED]\033[0m")
    else:
        print("\n\033[31m[SOME CHECKS FAILED]\033[0m")


if __name__ == "__main__":
    main()

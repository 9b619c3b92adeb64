"""
Read-only property graph over two DataFrames.

    vertices: one row per vertex, unique "id" column plus any properties
    edges:    one row per edge, "src" and "dst" ids plus any properties

Vertex id uniqueness is not verified here; that is the caller's contract.
"""

import pandas as pd

from .table import Table

ID = "id"
SRC = "src"
DST = "dst"
EDGE = "edge"


class GraphSchemaError(ValueError):
    """Raised when the vertex or edge frame lacks a required column."""


class GraphFrame:
    """
    A graph backed by a vertex DataFrame and an edge DataFrame.

    Usage:
        g = GraphFrame(vertices_df, edges_df)
        g = GraphFrame.from_edges(edges_df)
        ranks = g.pregel().with_vertex_column(...).send_msg_to_dst(...).agg_msgs(...).run()
    """

    def __init__(self, vertices, edges):
        if ID not in vertices.columns:
            raise GraphSchemaError(f"\033[31mVertex frame must have an '{ID}' column, got {list(vertices.columns)}\033[0m")
        missing = [c for c in (SRC, DST) if c not in edges.columns]
        if missing:
            raise GraphSchemaError(f"\033[31mEdge frame is missing columns {missing}, got {list(edges.columns)}\033[0m")

        self._vertices = vertices.reset_index(drop=True).copy()
        self._edges = edges.reset_index(drop=True).copy()
        self.vertex_table = Table.from_frame(self._vertices, name="vertices")
        self.edge_table = Table.from_frame(self._edges, name="edges")

    @classmethod
    def from_edges(cls, edges):
        """Build a graph whose vertices are the distinct edge endpoints."""
        ids = pd.concat([edges[SRC], edges[DST]], ignore_index=True).drop_duplicates()
        vertices = pd.DataFrame({ID: ids.sort_values().reset_index(drop=True)})
        return cls(vertices, edges)

    def __repr__(self):
        return f"GraphFrame(v={self.num_vertices}, e={self.num_edges})"

    @property
    def vertices(self):
        return self._vertices.copy()

    @property
    def edges(self):
        return self._edges.copy()

    @property
    def vertex_columns(self):
        return list(self._vertices.columns)

    @property
    def num_vertices(self):
        return len(self._vertices)

    @property
    def num_edges(self):
        return len(self._edges)

    # =========================================================================
    # DEGREES
    # =========================================================================

    def _degree(self, key, name):
        return self._edges.groupby(key).size().rename(name).reset_index().rename(columns={key: ID})

    @property
    def out_degrees(self):
        """[id, outDegree] for vertices with at least one outgoing edge."""
        return self._degree(SRC, "outDegree")

    @property
    def in_degrees(self):
        """[id, inDegree] for vertices with at least one incoming edge."""
        return self._degree(DST, "inDegree")

    @property
    def degrees(self):
        """[id, degree] counting both directions."""
        ends = pd.concat([self._edges[SRC], self._edges[DST]], ignore_index=True)
        return ends.groupby(ends).size().rename("degree").rename_axis(ID).reset_index()

    # =========================================================================
    # TRIPLETS
    # =========================================================================

    def triplet_table(self, vertices=None):
        """
        Join vertices to both edge endpoints.

        Columns are namespaced "src.*", "edge.*" and "dst.*".

        Args:
            vertices: Table to use as vertex state (defaults to the graph's own)
        """
        if vertices is None:
            vertices = self.vertex_table
        return (
            vertices.prefix(SRC)
            .join(self.edge_table.prefix(EDGE), f"{SRC}.{ID}", f"{EDGE}.{SRC}")
            .join(vertices.prefix(DST), f"{EDGE}.{DST}", f"{DST}.{ID}")
        )

    @property
    def triplets(self):
        return self.triplet_table().collect()

    def pregel(self, **kwargs):
        """Start a Pregel computation on this graph."""
        from .pregel_core import Pregel
        return Pregel(self, **kwargs)

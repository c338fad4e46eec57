"""
Edge relation for a single polygon.

Builds a NetworkX graph where nodes are the polygon's boundary edges
(by index) and an edge connects two boundary edges that touch within
tolerance.  The graph is built once per polygon and answers "which
edge lies across from edge *i*" without repeated positional scans.
"""

from typing import List, Optional

import networkx as nx
from shapely.geometry import LineString


def build_edge_graph(edges: List[LineString], tolerance: float) -> nx.Graph:
    """
    Build the touch graph of a polygon's edges.

    Parameters
    ----------
    edges : list[LineString]
        Ordered boundary edges.
    tolerance : float
        Two edges closer than this are considered touching.

    Returns
    -------
    nx.Graph
        Nodes are edge indices with a ``length`` attribute; an edge
        ``(i, j)`` means boundary edges *i* and *j* touch.
    """
    G = nx.Graph()
    for i, edge in enumerate(edges):
        G.add_node(i, length=edge.length)
    for i in range(len(edges)):
        for j in range(i + 1, len(edges)):
            if edges[i].distance(edges[j]) <= tolerance:
                G.add_edge(i, j)
    return G


class EdgeRelation:
    """Touching / across relation of a polygon's boundary edges."""

    def __init__(self, edges: List[LineString], tolerance: float):
        self.edges = edges
        self.graph = build_edge_graph(edges, tolerance)

    def touching(self, index: int) -> List[int]:
        return sorted(self.graph.neighbors(index))

    def across(self, index: int) -> Optional[int]:
        """First edge, in boundary order, that does not touch edge *index*."""
        for j in range(len(self.edges)):
            if j != index and not self.graph.has_edge(index, j):
                return j
        return None

    def longest(self) -> int:
        lengths = nx.get_node_attributes(self.graph, "length")
        return max(range(len(self.edges)), key=lambda i: (lengths[i], -i))

    def opposite_pairs(self):
        """
        Two pairs of opposite edges of a quadrilateral: edge 0 with the
        first edge not touching it, and the remaining two edges.
        Returns ``None`` if no across edge exists.
        """
        if len(self.edges) != 4:
            return None
        across = self.across(0)
        if across is None:
            return None
        rest = [i for i in range(4) if i not in (0, across)]
        return (0, across), (rest[0], rest[1])

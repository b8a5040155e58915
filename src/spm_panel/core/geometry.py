"""Panel Geometry

Dimensional quantities of a quadrilateral panel derived from its four
vertices and its width.

Vertex numbering convention (counterclockwise, starting at the lower left)::

    3-------2
    |       |
    |       |
    0-------1

Edge i joins vertex i to vertex i+1 (edge 3 closes the loop back to vertex 0).
Grips sit at the edge midpoints.

The skew dimensions pair the diagonals (vertex 0 with 2, vertex 1 with 3):

    a = (x1 + x2 - x0 - x3) / 2
    b = (y2 + y3 - y0 - y1) / 2
    c = (x2 + x3 - x0 - x1) / 2
    d = (y1 + y2 - y0 - y3) / 2

c = d = 0 for a rectangle aligned with the axes.
"""

from typing import Sequence, Tuple, Union

import numpy as np

from spm_panel.core.errors import GeometryError

TWO_PI = 2 * np.pi


class PanelGeometry:
    """Geometry of a quadrilateral panel.

    The vertex array is stored read-only and every derived quantity is a
    property computed from it, so a new geometry object is required to move
    a vertex.

    Parameters
    ----------
    vertices : array_like
        Four ordered vertices, shape (4, 2) or (4, 3). The z coordinate is
        ignored.
    width : float
        Panel width (out-of-plane thickness).

    Raises
    ------
    GeometryError
        If the quadrilateral is degenerate, self-intersecting, non-convex or
        ordered clockwise, or if the width is not positive.
    """

    def __init__(self, vertices: Union[Sequence[Sequence[float]], np.ndarray], width: float):
        coords = np.array(vertices, dtype=float)
        if coords.ndim != 2 or coords.shape[0] != 4 or coords.shape[1] not in (2, 3):
            raise GeometryError(f"A panel needs 4 plane vertices, got array of shape {coords.shape}")
        coords = np.ascontiguousarray(coords[:, :2])
        if not np.all(np.isfinite(coords)):
            raise GeometryError("Panel vertices must be finite")
        if not np.isfinite(width) or width <= 0:
            raise GeometryError(f"Panel width must be positive: {width}")

        coords.flags.writeable = False
        self._vertices = coords
        self._width = float(width)
        self._validate()

    def _validate(self):
        lengths = self.edge_lengths
        scale = lengths.max()
        if np.any(lengths <= 1e-9 * scale):
            raise GeometryError("Panel has repeated vertices")

        # Turn at each vertex: z-component of the cross product of the edges
        # meeting there. All positive <=> convex, simple and counterclockwise.
        edges = np.roll(self._vertices, -1, axis=0) - self._vertices
        incoming = np.roll(edges, 1, axis=0)
        turns = incoming[:, 0] * edges[:, 1] - incoming[:, 1] * edges[:, 0]
        tol = 1e-9 * scale**2
        if np.all(np.abs(turns) <= tol):
            raise GeometryError("Panel vertices are collinear")
        if np.all(turns < -tol):
            raise GeometryError("Panel vertices must be ordered counterclockwise")
        if np.any(turns <= tol):
            raise GeometryError(
                "Panel must be a convex, non-self-intersecting quadrilateral "
                f"(vertex turns: {np.round(turns, 6).tolist()})"
            )

    @property
    def vertices(self) -> np.ndarray:
        """Read-only (4, 2) vertex array."""
        return self._vertices

    @property
    def width(self) -> float:
        return self._width

    @property
    def vertex_coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        """X and Y coordinates of the vertices."""
        return self._vertices[:, 0], self._vertices[:, 1]

    @property
    def dimensions(self) -> Tuple[float, float, float, float]:
        """Skew dimensions (a, b, c, d)."""
        x, y = self.vertex_coordinates
        a = 0.5 * (x[1] + x[2] - x[0] - x[3])
        b = 0.5 * (y[2] + y[3] - y[0] - y[1])
        c = 0.5 * (x[2] + x[3] - x[0] - x[1])
        d = 0.5 * (y[1] + y[2] - y[0] - y[3])
        return float(a), float(b), float(c), float(d)

    @property
    def reference_length(self) -> float:
        a, b, _, _ = self.dimensions
        return min(a, b)

    @property
    def edge_vectors(self) -> np.ndarray:
        """(4, 2) array of edge vectors, edge i from vertex i to vertex i+1."""
        return np.roll(self._vertices, -1, axis=0) - self._vertices

    @property
    def edge_lengths(self) -> np.ndarray:
        return np.linalg.norm(self.edge_vectors, axis=1)

    @property
    def edge_angles(self) -> np.ndarray:
        """Angle of each edge to the horizontal, in [0, 2π)."""
        e = self.edge_vectors
        return np.mod(np.arctan2(e[:, 1], e[:, 0]), TWO_PI)

    @property
    def direction_cosines(self) -> np.ndarray:
        """(4, 2) array of (cos, sin) of each edge angle.

        Components smaller than 1e-6 are set to zero.
        """
        angles = self.edge_angles
        cosines = np.column_stack((np.cos(angles), np.sin(angles)))
        cosines[np.abs(cosines) < 1e-6] = 0.0
        return cosines

    @property
    def edge_midpoints(self) -> np.ndarray:
        """(4, 2) array of edge midpoints (grip positions)."""
        return 0.5 * (self._vertices + np.roll(self._vertices, -1, axis=0))

    @property
    def center_point(self) -> np.ndarray:
        """Midpoint of the midpoints of both diagonals."""
        v = self._vertices
        return 0.5 * (0.5 * (v[0] + v[2]) + 0.5 * (v[1] + v[3]))

    def is_rectangular(self, tolerance: float = 1e-3) -> bool:
        """True if every corner angle is 90° within ``tolerance`` radians."""
        angles = self.edge_angles
        corners = np.mod(np.roll(angles, -1) - angles, TWO_PI)
        return bool(np.all(np.abs(corners - 0.5 * np.pi) <= tolerance))

    @property
    def is_skewed(self) -> bool:
        _, _, c, d = self.dimensions
        scale = self.edge_lengths.max()
        return abs(c) > 1e-9 * scale or abs(d) > 1e-9 * scale

    def __repr__(self):
        a, b, c, d = self.dimensions
        return f"<PanelGeometry a={a:g} b={b:g} c={c:g} d={d:g} width={self._width:g}>"

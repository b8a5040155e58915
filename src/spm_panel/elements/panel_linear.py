"""
Linear Elastic Shear Panel.

The panel carries a constant shear flow along its four edges; each grip
transmits one force, parallel to its edge. The local stiffness relates the
four edge-parallel grip displacements to those forces, and the
transformation matrix maps global (x, y) grip dofs to edge directions.

Theory
------
Rectangular panel (a, b edge lengths, G = Ec/2.4, w width)::

             | a/b  -1   a/b  -1  |
    K = G·w· | -1   b/a  -1   b/a |
             | a/b  -1   a/b  -1  |
             | -1   b/a  -1   b/a |

General quadrilateral: with edge terms c_i = x_{i+1} - x_i,
s_i = y_{i+1} - y_i, r_i = x_i·y_{i+1} - x_{i+1}·y_i, k_i is the determinant
of the [c, s, r] columns without the i-th one, and

    K = 16·G·w / (Σk · ku) · B ⊗ B,   B = [-k1·l1, k2·l2, -k3·l3, k4·l4]

Both expressions coincide for rectangles.

Stresses use shear only: τ_i = f_i / (l_i·w), averaged with alternating
signs, and the principal stresses follow the truss model.
"""

import logging
from typing import Tuple

import numpy as np

from spm_panel.core.errors import GeometryError
from spm_panel.elements.elements import Behavior, PanelFormulation
from spm_panel.postprocess.stress_recovery import truss_principal_stresses

logger = logging.getLogger(__name__)


class LinearPanel(PanelFormulation):
    """
    Linear elastic shear panel formulation.

    Parameters
    ----------
    geometry : PanelGeometry
        Panel geometry.
    concrete : Concrete
        Concrete; only the shear modulus Gc is used.
    reinforcement : PanelReinforcement
        Used for the truss model principal stresses.
    stringer_depth_corrections : np.ndarray
        Not used by the linear formulation.
    settings : AnalysisSettings
        Force and rectangularity tolerances.
    """

    behavior = Behavior.LINEAR

    def __init__(self, geometry, concrete, reinforcement, stringer_depth_corrections, settings):
        super().__init__(geometry, concrete, reinforcement, stringer_depth_corrections, settings)
        self.is_rectangular = geometry.is_rectangular(settings.rectangular_tolerance)
        self.transformation_matrix = self._transformation_matrix()
        if self.is_rectangular:
            self.local_stiffness = self._rectangular_stiffness()
        else:
            self.local_stiffness = self._general_stiffness()

    @property
    def Gc(self) -> float:
        return self.concrete.Gc

    def _transformation_matrix(self) -> np.ndarray:
        """4x8 matrix from global grip dofs to edge-parallel displacements."""
        T = np.zeros((4, 8))
        for i, (m, n) in enumerate(self.geometry.direction_cosines):
            T[i, 2 * i] = m
            T[i, 2 * i + 1] = n
        return T

    def _rectangular_stiffness(self) -> np.ndarray:
        lengths = self.geometry.edge_lengths
        a, b = lengths[0], lengths[1]
        row_a = [a / b, -1.0, a / b, -1.0]
        row_b = [-1.0, b / a, -1.0, b / a]
        return self.Gc * self.geometry.width * np.array([row_a, row_b, row_a, row_b])

    def _general_stiffness(self) -> np.ndarray:
        x, y = self.geometry.vertex_coordinates
        a, b, c, d = self.geometry.dimensions
        lengths = self.geometry.edge_lengths

        xn, yn = np.roll(x, -1), np.roll(y, -1)
        edge_terms = np.column_stack((xn - x, yn - y, x * yn - xn * y))

        # k_i: determinant of the edge terms without edge i
        k = np.array(
            [np.linalg.det(np.delete(edge_terms, i, axis=0).T) for i in range(4)]
        )

        cs, ss = edge_terms[:, 0], edge_terms[:, 1]
        t1 = -b * cs[0] - c * ss[0]
        t2 = a * ss[1] + d * cs[1]
        t3 = b * cs[2] + c * ss[2]
        t4 = -a * ss[3] - d * cs[3]

        kf = k.sum()
        ku = -t1 * k[0] + t2 * k[1] - t3 * k[2] + t4 * k[3]

        scale_f = np.abs(k).max()
        scale_u = np.abs([t1 * k[0], t2 * k[1], t3 * k[2], t4 * k[3]]).max()
        if scale_f == 0 or abs(kf) <= 1e-12 * scale_f:
            raise GeometryError(f"Degenerate panel: stiffness factor kf vanishes ({self.geometry})")
        if scale_u == 0 or abs(ku) <= 1e-12 * scale_u:
            raise GeometryError(f"Degenerate panel: stiffness factor ku vanishes ({self.geometry})")

        D = 16 * self.Gc * self.geometry.width / (kf * ku)
        B = np.array([-k[0], k[1], -k[2], k[3]]) * lengths
        return D * np.outer(B, B)

    @property
    def global_stiffness(self) -> np.ndarray:
        """Stiffness in global grip dofs, Tᵀ·K·T (8x8)."""
        T = self.transformation_matrix
        return T.T @ self.local_stiffness @ T

    @property
    def local_forces(self) -> np.ndarray:
        """Edge-parallel grip forces (4,); magnitudes below the force tolerance are zero."""
        fl = self.local_stiffness @ (self.transformation_matrix @ self.displacements)
        fl[np.abs(fl) < self.settings.force_tolerance] = 0.0
        return fl

    @property
    def forces(self) -> np.ndarray:
        return self.transformation_matrix.T @ self.local_forces

    @property
    def shear_stresses(self) -> np.ndarray:
        """Shear stress along each edge, τ_i = f_i / (l_i·w)."""
        return self.local_forces / (self.geometry.edge_lengths * self.geometry.width)

    @property
    def average_stresses(self) -> np.ndarray:
        tau = self.shear_stresses
        tau_avg = 0.25 * (-tau[0] + tau[1] - tau[2] + tau[3])
        return np.array([0.0, 0.0, tau_avg])

    @property
    def principal_stresses(self) -> Tuple[np.ndarray, float]:
        fyx, fyy = self.reinforcement.yield_stresses
        return truss_principal_stresses(self.average_stresses[2], fyx, fyy)

    def __repr__(self):
        kind = "rectangular" if self.is_rectangular else "general"
        return f"<LinearPanel {kind} geometry={self.geometry}>"

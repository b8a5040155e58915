"""
Nonlinear Membrane Panel.

The panel is discretized with four integration points, one per edge. Grip
displacements map to the 12 point strains through the compatibility matrix
BA (12x8). Point stresses integrate along the edges into edge resultants,
which Q (8x8) turns into grip forces in global directions::

    ε = BA·u
    f = Q·(Pc·σc + Ps·σs)
    K = Q·Pc·Dc·BA + Q·Ps·Ds·BA

Pc and Ps (8x12) are the edge integration matrices of concrete and
reinforcement. Concrete loses the lever arm taken by the stringers on the
adjacent edges (stringer depth corrections); the reinforcement does not.

Skew dimensions a, b, c, d are defined in :mod:`spm_panel.core.geometry`.

References
----------
- Blaauwendraad, J. (2010). "Plates and FEM: Surprises and Pitfalls".
- Vecchio, F.J. and Collins, M.P. (1986). "The Modified Compression-Field
  Theory for Reinforced Concrete Elements Subjected to Shear".
"""

import copy
import logging
from typing import List, Tuple

import numpy as np
from scipy.linalg import block_diag

from spm_panel.constitutive.membrane import IntegrationPoint, MembraneFactory
from spm_panel.core.errors import GeometryError
from spm_panel.elements.elements import Behavior, PanelFormulation
from spm_panel.postprocess.stress_recovery import PointResult, mohr_principal_stresses

logger = logging.getLogger(__name__)

N_POINTS = 4


class NonlinearPanel(PanelFormulation):
    """
    Nonlinear panel formulation with four membrane integration points.

    Parameters
    ----------
    geometry : PanelGeometry
        Panel geometry.
    concrete : Concrete
        Concrete parameters handed to the integration points.
    reinforcement : PanelReinforcement
        Smeared reinforcement handed to the integration points.
    stringer_depth_corrections : np.ndarray
        Half heights of the stringers at the four grips.
    settings : AnalysisSettings
        Numerical settings.
    behavior : Behavior
        Nonlinear behavior this formulation represents.
    membrane_factory : callable
        Creates an integration point from
        ``(concrete, reinforcement, width, reference_length=...)``.

    Raises
    ------
    GeometryError
        If a skew dimension or denominator of the compatibility matrix vanishes.
    """

    def __init__(
        self,
        geometry,
        concrete,
        reinforcement,
        stringer_depth_corrections,
        settings,
        behavior: Behavior = Behavior.NONLINEAR_MCFT,
        membrane_factory: MembraneFactory = None,
    ):
        super().__init__(geometry, concrete, reinforcement, stringer_depth_corrections, settings)
        if membrane_factory is None:
            raise ValueError("A membrane factory is required for nonlinear panels")
        self.behavior = behavior
        self.membrane_factory = membrane_factory
        self._check_dimensions()

        self.ba_matrix = self._ba_matrix()
        self.q_matrix = self._q_matrix()
        self.pc_matrix, self.ps_matrix = self._p_matrices()
        self._integration_points = [
            membrane_factory(
                concrete,
                reinforcement,
                geometry.width,
                reference_length=geometry.reference_length,
            )
            for _ in range(N_POINTS)
        ]

    def _check_dimensions(self):
        a, b, c, d = self.geometry.dimensions
        scale = self.geometry.edge_lengths.max()
        if abs(a) <= 1e-9 * scale or abs(b) <= 1e-9 * scale:
            raise GeometryError(f"Degenerate panel: a={a}, b={b}")
        denominators = (
            a * b - c * d,
            0.5 * (a * a - c * c) + b * b - d * d,
            0.5 * (b * b - d * d) + a * a - c * c,
        )
        if any(abs(t) <= 1e-9 * scale**2 for t in denominators):
            raise GeometryError(
                f"Degenerate panel: compatibility denominators {denominators} vanish"
            )

    def _ba_matrix(self) -> np.ndarray:
        """Compatibility matrix BA (12x8), strains of the four points from grip displacements."""
        a, b, c, d = self.geometry.dimensions
        t1 = a * b - c * d
        t2 = 0.5 * (a * a - c * c) + b * b - d * d
        t3 = 0.5 * (b * b - d * d) + a * a - c * c

        # Generalized strains from grip displacements
        A = np.array(
            [
                [d / t1, 0, b / t1, 0, -d / t1, 0, -b / t1, 0],
                [0, -a / t1, 0, -c / t1, 0, a / t1, 0, c / t1],
                [-0.5 * a / t1, 0.5 * d / t1, -0.5 * c / t1, 0.5 * b / t1,
                 0.5 * a / t1, -0.5 * d / t1, 0.5 * c / t1, -0.5 * b / t1],
                [-a / t2, 0, a / t2, 0, -a / t2, 0, a / t2, 0],
                [0, b / t3, 0, -b / t3, 0, b / t3, 0, -b / t3],
            ]
        )

        # Point strains from generalized strains
        B = np.array(
            [
                [1, 0, 0, -c / a, 0],
                [0, 1, 0, 0, -1],
                [0, 0, 2, 2 * b / a, 2 * c / b],
                [1, 0, 0, 1, 0],
                [0, 1, 0, 0, d / b],
                [0, 0, 2, -2 * d / a, -2 * a / b],
                [1, 0, 0, c / a, 0],
                [0, 1, 0, 0, 1],
                [0, 0, 2, -2 * b / a, -2 * c / b],
                [1, 0, 0, -1, 0],
                [0, 1, 0, 0, -d / b],
                [0, 0, 2, 2 * d / a, 2 * a / b],
            ]
        )

        return B @ A

    def _q_matrix(self) -> np.ndarray:
        """Edge resultants to global grip forces (8x8)."""
        a, b, c, d = self.geometry.dimensions
        t4 = a * a + b * b
        a2, b2 = a * a, b * b
        ab, ac, ad, bc, bd = a * b, a * c, a * d, b * c, b * d

        Q = np.zeros((8, 8))
        Q[0] = [a2, bc, bd - t4, -ab, -a2, -bc, -bd - t4, ab]
        Q[3] = [-ab, ac - t4, ad, b2, ab, -ac - t4, -ad, -b2]
        Q[4] = [-a2, -bc, -bd - t4, ab, a2, bc, bd - t4, -ab]
        Q[7] = [ab, -ac - t4, -ad, -b2, -ab, ac - t4, ad, b2]
        for i in (1, 2, 5, 6):
            Q[i, i] = 2 * t4

        return Q / (2 * t4)

    def _p_matrices(self) -> Tuple[np.ndarray, np.ndarray]:
        """Edge integration matrices (Pc, Ps) of concrete and reinforcement (8x12)."""
        x, y = self.geometry.vertex_coordinates
        c = self.stringer_depth_corrections
        t = self.geometry.width

        Pc = np.zeros((8, 12))
        Pc[0, 0] = Pc[1, 2] = t * (y[1] - y[0])
        Pc[0, 2] = t * (x[0] - x[1])
        Pc[1, 1] = t * (x[0] - x[1] + c[1] + c[3])
        Pc[2, 3] = t * (y[2] - y[1] - c[2] - c[0])
        Pc[2, 5] = Pc[3, 4] = t * (x[1] - x[2])
        Pc[3, 5] = t * (y[2] - y[1])
        Pc[4, 6] = Pc[5, 8] = t * (y[3] - y[2])
        Pc[4, 8] = t * (x[2] - x[3])
        Pc[5, 7] = t * (x[2] - x[3] - c[1] - c[3])
        Pc[6, 9] = t * (y[0] - y[3] + c[0] + c[2])
        Pc[6, 11] = Pc[7, 10] = t * (x[3] - x[0])
        Pc[7, 11] = t * (y[0] - y[3])

        # Reinforcement carries no shear and keeps the full edge length
        Ps = np.zeros((8, 12))
        Ps[0, 0] = Pc[0, 0]
        Ps[1, 1] = t * (x[0] - x[1])
        Ps[2, 3] = t * (y[2] - y[1])
        Ps[3, 4] = Pc[3, 4]
        Ps[4, 6] = Pc[4, 6]
        Ps[5, 7] = t * (x[2] - x[3])
        Ps[6, 9] = t * (y[0] - y[3])
        Ps[7, 10] = Pc[7, 10]

        return Pc, Ps

    @property
    def integration_points(self) -> List[IntegrationPoint]:
        return self._integration_points

    def strains(self, displacements: np.ndarray) -> np.ndarray:
        """Point strains (12,) for grip displacements (8,)."""
        return self.ba_matrix @ displacements

    def analysis(self, displacements: np.ndarray):
        super().analysis(displacements)
        strains = self.strains(self.displacements)
        for i, point in enumerate(self._integration_points):
            point.update(strains[3 * i : 3 * i + 3])

    def results(self):
        for point in self._integration_points:
            point.commit()

    @property
    def initial_material_stiffness(self) -> Tuple[np.ndarray, np.ndarray]:
        """Block-diagonal (12x12) initial concrete and reinforcement stiffness."""
        Dc = block_diag(*(p.initial_concrete_stiffness for p in self._integration_points))
        Ds = block_diag(*(p.initial_reinforcement_stiffness for p in self._integration_points))
        return Dc, Ds

    @property
    def material_stiffness(self) -> Tuple[np.ndarray, np.ndarray]:
        """Block-diagonal (12x12) current concrete and reinforcement stiffness.

        The initial stiffness is used until every point has been analysed.
        """
        if any(p.response is None for p in self._integration_points):
            return self.initial_material_stiffness
        Dc = block_diag(*(p.concrete_stiffness for p in self._integration_points))
        Ds = block_diag(*(p.reinforcement_stiffness for p in self._integration_points))
        return Dc, Ds

    def _stiffness(self, Dc: np.ndarray, Ds: np.ndarray) -> np.ndarray:
        QPc = self.q_matrix @ self.pc_matrix
        QPs = self.q_matrix @ self.ps_matrix
        return (QPc @ Dc + QPs @ Ds) @ self.ba_matrix

    @property
    def global_stiffness(self) -> np.ndarray:
        """Secant stiffness (8x8) with the current material stiffness."""
        return self._stiffness(*self.material_stiffness)

    @property
    def initial_stiffness(self) -> np.ndarray:
        return self._stiffness(*self.initial_material_stiffness)

    @property
    def stress_vectors(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Total, concrete and reinforcement stresses (12,) of the four points."""
        sigma_c = np.concatenate([p.concrete_stresses for p in self._integration_points])
        sigma_s = np.concatenate([p.reinforcement_stresses for p in self._integration_points])
        return sigma_c + sigma_s, sigma_c, sigma_s

    @property
    def edge_resultants(self) -> np.ndarray:
        """Stress resultants (8,) along the edges, in the order Q expects."""
        x, y = self.geometry.vertex_coordinates
        c = self.stringer_depth_corrections
        sig, sig_c, sig_s = (v.reshape(N_POINTS, 3) for v in self.stress_vectors)
        s1, s2, s3, s4 = sig
        sc1, sc2, sc3, sc4 = sig_c
        ss1, ss2, ss3, ss4 = sig_s

        f = np.array(
            [
                -s1[0] * (y[0] - y[1]) - s1[2] * (x[1] - x[0]),
                -sc1[1] * (x[1] - x[0] - c[1] - c[3]) - ss1[1] * (x[1] - x[0])
                - s1[2] * (y[0] - y[1]),
                sc2[0] * (y[2] - y[1] - c[2] - c[0]) + ss2[0] * (y[2] - y[1])
                - s2[2] * (x[2] - x[1]),
                -s2[1] * (x[2] - x[1]) + s2[2] * (y[2] - y[1]),
                -s3[0] * (y[2] - y[3]) + s3[2] * (x[2] - x[3]),
                sc3[1] * (x[2] - x[3] - c[1] - c[3]) + ss3[1] * (x[2] - x[3])
                - s3[2] * (y[2] - y[3]),
                -sc4[0] * (y[3] - y[0] - c[0] - c[2]) - ss4[0] * (y[3] - y[0])
                - s4[2] * (x[0] - x[3]),
                -s4[1] * (x[0] - x[3]) - s4[2] * (y[3] - y[0]),
            ]
        )
        return self.geometry.width * f

    @property
    def forces(self) -> np.ndarray:
        """Grip forces (8,) of the last analysed state. Not rounded."""
        return self.q_matrix @ self.edge_resultants

    @property
    def distributed_forces(self) -> np.ndarray:
        """Grip forces from the integration matrices, Q·(Pc·σc + Ps·σs).

        Equal to ``forces`` while the reinforcement carries no shear.
        """
        _, sigma_c, sigma_s = self.stress_vectors
        return self.q_matrix @ (self.pc_matrix @ sigma_c + self.ps_matrix @ sigma_s)

    @property
    def average_stresses(self) -> np.ndarray:
        return np.mean([p.stresses for p in self._integration_points], axis=0)

    @property
    def principal_stresses(self) -> Tuple[np.ndarray, float]:
        return mohr_principal_stresses(self.average_stresses)

    @property
    def concrete_principal_strains(self) -> np.ndarray:
        """(ε1, ε2) of the four points, flattened (8,)."""
        return np.array([e for p in self._integration_points for e in p.principal_strains])

    @property
    def concrete_principal_stresses(self) -> np.ndarray:
        """(fc1, fc2) of the four points, flattened (8,)."""
        return np.array(
            [s for p in self._integration_points for s in p.concrete_principal_stresses]
        )

    @property
    def strain_angles(self) -> np.ndarray:
        """Direction of ε2 at each point (4,)."""
        return np.array([p.principal_angles[1] for p in self._integration_points])

    def point_results(self) -> List[PointResult]:
        return [
            PointResult(
                strains=p.strains.copy(),
                stresses=p.stresses.copy(),
                concrete_stresses=p.concrete_stresses.copy(),
                reinforcement_stresses=p.reinforcement_stresses.copy(),
                principal_strains=p.principal_strains,
                concrete_principal_stresses=p.concrete_principal_stresses,
                strain_angle=p.principal_angles[1],
                cracked=p.cracked,
                crushed=p.crushed,
                yielded=p.yielded,
            )
            for p in self._integration_points
        ]

    def snapshot(self):
        return self.displacements.copy(), copy.deepcopy(self._integration_points)

    def restore(self, state):
        displacements, points = state
        self.displacements = displacements
        # In place, so references to the points stay valid
        for point, saved in zip(self._integration_points, points):
            point.__dict__.update(saved.__dict__)

    def __repr__(self):
        model = getattr(self.membrane_factory, "__name__", repr(self.membrane_factory))
        return f"<NonlinearPanel behavior={self.behavior.value} membrane={model} geometry={self.geometry}>"

"""
Tests for the nonlinear membrane panel.

The tests validate:
- Rigid-body modes of the compatibility matrix BA
- Discrete equilibrium of the Q matrix
- Agreement of the edge-resultant and integration-matrix force routes
- Analysis idempotence and commit semantics
- Finite-difference tangent stiffness and state restoration
- Behavior switching and membrane model selection
"""

import numpy as np
import pytest

from spm_panel.constitutive.membrane import (
    MEMBRANE_MODELS,
    LinearElasticMembrane,
    MembraneResponse,
)
from spm_panel.core.config import AnalysisSettings
from spm_panel.core.errors import ComputationError, GeometryError
from spm_panel.core.geometry import PanelGeometry
from spm_panel.core.material import Concrete, PanelReinforcement, Steel
from spm_panel.core.stringer import Stringer
from spm_panel.elements import Behavior, LinearPanel, NonlinearPanel, Panel

SQUARE = [[0, 0], [1000, 0], [1000, 1000], [0, 1000]]
SKEWED = [[0, 0], [1000, 100], [1100, 900], [-50, 800]]
DISPLACEMENTS = np.array([0.02, -0.01, 0.015, 0.03, -0.02, 0.005, 0.01, -0.025])


class NaNMembrane(LinearElasticMembrane):
    """Elastic membrane that returns NaN stresses while ``fail`` is set."""

    fail = False

    def _evaluate(self, strains):
        response = super()._evaluate(strains)
        if type(self).fail:
            return MembraneResponse(
                concrete_stresses=np.full(3, np.nan),
                reinforcement_stresses=response.reinforcement_stresses,
                concrete_stiffness=response.concrete_stiffness,
                reinforcement_stiffness=response.reinforcement_stiffness,
            )
        return response


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def concrete():
    return Concrete(strength=30.0, elastic_modulus=24000.0)


@pytest.fixture
def reinforcement():
    steel = Steel(yield_stress=500.0, elastic_modulus=210000.0)
    return PanelReinforcement(bar_diameter=(8.0, 10.0), bar_spacing=(100.0, 150.0), steel=(steel, steel))


@pytest.fixture
def stringers():
    return [
        Stringer(1, (0, 1, 2), 100.0),
        Stringer(2, (2, 3, 4), 150.0),
        Stringer(3, (4, 5, 6), 120.0),
        Stringer(4, (6, 7, 0), 80.0),
    ]


def make_panel(concrete, reinforcement, vertices=SQUARE, stringers=(), **kwargs):
    kwargs.setdefault("membrane_model", "elastic")
    return Panel(
        number=1,
        vertices=vertices,
        width=100.0,
        grips=[1, 3, 5, 7],
        concrete=concrete,
        reinforcement=reinforcement,
        behavior=Behavior.NONLINEAR_MCFT,
        stringers=stringers,
        **kwargs,
    )


@pytest.fixture(params=["square", "skewed"])
def panel(request, concrete, reinforcement):
    vertices = SQUARE if request.param == "square" else SKEWED
    return make_panel(concrete, reinforcement, vertices)


@pytest.fixture
def stringer_panel(concrete, reinforcement, stringers):
    return make_panel(concrete, reinforcement, SKEWED, stringers)


# =============================================================================
# Operators
# =============================================================================

class TestOperators:
    """Tests for the BA, Q and P matrices."""

    def test_shapes(self, panel):
        formulation = panel.formulation
        assert isinstance(formulation, NonlinearPanel)
        assert formulation.ba_matrix.shape == (12, 8)
        assert formulation.q_matrix.shape == (8, 8)
        assert formulation.pc_matrix.shape == (8, 12)
        assert formulation.ps_matrix.shape == (8, 12)

    @pytest.mark.parametrize("translation", [(1.0, 0.0), (0.0, 1.0), (0.3, -0.7)])
    def test_rigid_translation_no_strain(self, panel, translation):
        u = np.tile(translation, 4)
        assert np.allclose(panel.formulation.ba_matrix @ u, 0.0, atol=1e-15)

    def test_rigid_rotation_no_strain(self, concrete, reinforcement):
        panel = make_panel(concrete, reinforcement, [[0, 0], [2000, 0], [2000, 1000], [0, 1000]])
        x, y = panel.grip_positions.T
        u = 1e-3 * np.column_stack((-y, x)).ravel()
        assert np.allclose(panel.formulation.ba_matrix @ u, 0.0, atol=1e-15)

    def test_uniform_strain(self, concrete, reinforcement):
        """A homogeneous strain field is reproduced at every point."""
        panel = make_panel(concrete, reinforcement)
        ex, ey, gxy = 1e-4, -2e-4, 3e-4
        x, y = panel.grip_positions.T
        u = np.column_stack((ex * x + 0.5 * gxy * y, ey * y + 0.5 * gxy * x)).ravel()
        strains = panel.formulation.ba_matrix @ u
        assert np.allclose(strains, np.tile([ex, ey, gxy], 4))

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_q_equilibrium(self, panel, seed):
        """Any edge resultant maps to self-equilibrated grip forces."""
        f = np.random.default_rng(seed).normal(size=8) * 1e3
        forces = (panel.formulation.q_matrix @ f).reshape(4, 2)
        assert np.allclose(forces.sum(axis=0), 0.0, atol=1e-8)

        arm = panel.grip_positions - panel.geometry.center_point
        moment = np.sum(arm[:, 0] * forces[:, 1] - arm[:, 1] * forces[:, 0])
        assert moment == pytest.approx(0.0, abs=1e-5)

    def test_concrete_lever_arm_corrected(self, stringer_panel):
        formulation = stringer_panel.formulation
        c = formulation.stringer_depth_corrections
        assert np.allclose(c, [50.0, 75.0, 60.0, 40.0])
        width = stringer_panel.width
        assert formulation.pc_matrix[1, 1] - formulation.ps_matrix[1, 1] == pytest.approx(width * (c[1] + c[3]))
        assert formulation.ps_matrix[2, 3] - formulation.pc_matrix[2, 3] == pytest.approx(width * (c[0] + c[2]))

    def test_ps_has_no_shear_terms(self, panel):
        Ps = panel.formulation.ps_matrix
        assert np.all(Ps[:, 2::3] == 0)

    def test_degenerate_parallelogram(self, concrete, reinforcement):
        """Skew with c = √3·a zeroes a compatibility denominator."""
        s = 1000 * np.sqrt(3)
        vertices = [[0, 0], [1000, 0], [1000 + s, 1000], [s, 1000]]
        with pytest.raises(GeometryError):
            make_panel(concrete, reinforcement, vertices)

        # The linear formulation has no such restriction
        linear = Panel(1, vertices, 100.0, [1, 3, 5, 7], concrete, reinforcement)
        assert isinstance(linear.formulation, LinearPanel)


# =============================================================================
# Analysis
# =============================================================================

class TestAnalysis:
    """Tests for analysis, forces and commit semantics."""

    def test_zero_displacement(self, panel):
        panel.analysis()
        assert np.array_equal(panel.forces, np.zeros(8))
        assert np.array_equal(panel.average_stresses, np.zeros(3))

    def test_forces_before_analysis(self, panel):
        assert np.allclose(panel.forces, 0.0)
        assert np.allclose(panel.global_stiffness, panel.initial_stiffness)

    def test_force_routes_agree(self, stringer_panel):
        stringer_panel.displacements = DISPLACEMENTS
        stringer_panel.analysis()
        formulation = stringer_panel.formulation
        assert np.allclose(formulation.forces, formulation.distributed_forces, rtol=0, atol=1e-6)

    def test_elastic_forces_are_secant(self, stringer_panel):
        stringer_panel.displacements = DISPLACEMENTS
        stringer_panel.analysis()
        expected = stringer_panel.global_stiffness @ DISPLACEMENTS
        assert np.allclose(stringer_panel.forces, expected, rtol=1e-9, atol=1e-6)

    def test_square_stiffness_symmetric(self, concrete, reinforcement):
        panel = make_panel(concrete, reinforcement, SQUARE)
        for K in (panel.initial_stiffness, panel.global_stiffness):
            assert np.allclose(K, K.T, rtol=0, atol=1e-9 * np.abs(K).max())

        panel.displacements = DISPLACEMENTS
        panel.analysis()
        K = panel.global_stiffness
        assert np.allclose(K, K.T, rtol=0, atol=1e-9 * np.abs(K).max())

    def test_forces_self_equilibrated(self, stringer_panel):
        stringer_panel.displacements = DISPLACEMENTS
        stringer_panel.analysis()
        forces = stringer_panel.forces.reshape(4, 2)
        scale = np.abs(forces).max()
        assert np.allclose(forces.sum(axis=0), 0.0, atol=1e-9 * scale)

    def test_point_strains(self, panel):
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        strains = panel.formulation.ba_matrix @ DISPLACEMENTS
        for i, point in enumerate(panel.integration_points):
            assert np.allclose(point.strains, strains[3 * i : 3 * i + 3])

    def test_idempotent(self, panel):
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        first = [(p.stresses.copy(), p.concrete_stiffness.copy()) for p in panel.integration_points]
        forces = panel.forces.copy()

        panel.analysis()
        for (stresses, stiffness), point in zip(first, panel.integration_points):
            assert np.array_equal(point.stresses, stresses)
            assert np.array_equal(point.concrete_stiffness, stiffness)
            assert point.load_step == 0
        assert np.array_equal(panel.forces, forces)

    def test_results_commit(self, panel):
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        panel.results()
        for point in panel.integration_points:
            assert point.load_step == 1
            assert np.array_equal(point.committed_strains, point.strains)

        # New trial state leaves the committed one untouched
        committed = [p.committed_strains.copy() for p in panel.integration_points]
        panel.displacements = 2 * DISPLACEMENTS
        panel.analysis()
        for before, point in zip(committed, panel.integration_points):
            assert np.array_equal(point.committed_strains, before)

    def test_average_and_principal_stresses(self, panel):
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        average = panel.average_stresses
        expected = np.mean([p.stresses for p in panel.integration_points], axis=0)
        assert np.allclose(average, expected)

        principal, theta = panel.principal_stresses
        assert principal[0] >= principal[1]
        assert principal[0] + principal[1] == pytest.approx(average[0] + average[1])
        assert -np.pi / 2 < theta <= np.pi / 2

    def test_stress_vectors(self, panel):
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        sigma, sigma_c, sigma_s = panel.formulation.stress_vectors
        assert sigma.shape == (12,)
        assert np.allclose(sigma, sigma_c + sigma_s)
        assert np.all(sigma_s[2::3] == 0)

    def test_principal_vectors(self, panel):
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        formulation = panel.formulation
        strains = formulation.concrete_principal_strains
        stresses = formulation.concrete_principal_stresses
        assert strains.shape == (8,) and stresses.shape == (8,)
        assert np.all(strains[0::2] >= strains[1::2])
        assert formulation.strain_angles.shape == (4,)

    def test_point_results(self, panel):
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        results = panel.point_results()
        assert len(results) == 4
        assert np.allclose(results[0].strains, panel.integration_points[0].strains)
        assert not any(r.crushed for r in results)

    def test_cracking_flag(self, concrete, reinforcement):
        panel = make_panel(concrete, reinforcement)
        # Uniform tension of 1e-3 in x, beyond the cracking strain
        x, _ = panel.grip_positions.T
        panel.displacements = np.column_stack((1e-3 * x, np.zeros(4))).ravel()
        panel.analysis()
        assert panel.cracked
        assert not panel.crushed
        assert not panel.yielded


# =============================================================================
# Tangent stiffness
# =============================================================================

class TestTangentStiffness:
    """Tests for the finite-difference tangent stiffness."""

    def test_matches_secant_at_zero(self, panel):
        """Central differences of an elastic panel reproduce its stiffness."""
        K = panel.global_stiffness
        Kt = panel.tangent_stiffness()
        assert np.allclose(Kt, K, rtol=1e-4, atol=1e-4 * np.abs(K).max())

    def test_matches_secant_loaded(self, stringer_panel):
        stringer_panel.displacements = DISPLACEMENTS
        stringer_panel.analysis()
        K = stringer_panel.global_stiffness
        Kt = stringer_panel.tangent_stiffness(step=1e-6)
        assert np.allclose(Kt, K, rtol=1e-4, atol=1e-4 * np.abs(K).max())

    def test_step_from_settings(self, concrete, reinforcement):
        settings = AnalysisSettings(tangent_step=1e-7)
        panel = make_panel(concrete, reinforcement, settings=settings)
        K = panel.global_stiffness
        assert np.allclose(panel.tangent_stiffness(), K, rtol=1e-4, atol=1e-4 * np.abs(K).max())

    def test_state_restored(self, stringer_panel):
        stringer_panel.displacements = DISPLACEMENTS
        stringer_panel.analysis()
        points = stringer_panel.integration_points
        strains = [p.strains.copy() for p in points]
        forces = stringer_panel.forces.copy()

        stringer_panel.tangent_stiffness(step=1e-6)

        assert np.array_equal(stringer_panel.displacements, DISPLACEMENTS)
        assert stringer_panel.integration_points is points
        for before, point in zip(strains, points):
            assert np.array_equal(point.strains, before)
        assert np.array_equal(stringer_panel.forces, forces)

    def test_state_restored_on_error(self, concrete, reinforcement, monkeypatch):
        panel = make_panel(concrete, reinforcement, SKEWED, membrane_model=NaNMembrane)
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        strains = [p.strains.copy() for p in panel.integration_points]
        stresses = [p.stresses.copy() for p in panel.integration_points]

        monkeypatch.setattr(NaNMembrane, "fail", True)
        with pytest.raises(ComputationError):
            panel.tangent_stiffness()

        assert np.array_equal(panel.displacements, DISPLACEMENTS)
        for point, e, s in zip(panel.integration_points, strains, stresses):
            assert np.array_equal(point.strains, e)
            assert np.array_equal(point.stresses, s)

    def test_invalid_step(self, panel):
        with pytest.raises(ValueError):
            panel.tangent_stiffness(step=0.0)


# =============================================================================
# Behavior and membrane selection
# =============================================================================

class TestBehavior:
    """Tests for behavior switching and membrane model lookup."""

    def test_unregistered_model(self, concrete, reinforcement):
        with pytest.raises(ValueError, match="elastic"):
            make_panel(concrete, reinforcement, membrane_model="no-such-model")

    def test_behavior_selects_model(self, concrete, reinforcement, monkeypatch):
        monkeypatch.delitem(MEMBRANE_MODELS, "mcft", raising=False)
        with pytest.raises(ValueError, match="mcft"):
            make_panel(concrete, reinforcement, membrane_model=None)

        monkeypatch.setitem(MEMBRANE_MODELS, "mcft", NaNMembrane)
        panel = make_panel(concrete, reinforcement, membrane_model=None)
        assert all(isinstance(p, NaNMembrane) for p in panel.integration_points)

    def test_settings_model(self, concrete, reinforcement):
        settings = AnalysisSettings(membrane_model="elastic")
        panel = make_panel(concrete, reinforcement, membrane_model=None, settings=settings)
        assert all(isinstance(p, LinearElasticMembrane) for p in panel.integration_points)

    def test_behavior_change_rebuilds(self, concrete, reinforcement):
        panel = make_panel(concrete, reinforcement)
        panel.displacements = DISPLACEMENTS
        panel.analysis()
        panel.results()
        old_points = panel.integration_points

        panel.behavior = Behavior.LINEAR
        assert isinstance(panel.formulation, LinearPanel)
        assert panel.integration_points == []

        panel.behavior = "dsfm"
        assert panel.behavior is Behavior.NONLINEAR_DSFM
        new_points = panel.integration_points
        assert len(new_points) == 4
        assert all(p not in old_points for p in new_points)
        assert all(p.load_step == 0 for p in new_points)

    def test_rejected_geometry_keeps_panel(self, concrete, reinforcement):
        panel = make_panel(concrete, reinforcement)
        formulation = panel.formulation
        s = 1000 * np.sqrt(3)
        with pytest.raises(GeometryError):
            panel.geometry = PanelGeometry([[0, 0], [1000, 0], [1000 + s, 1000], [s, 1000]], 100.0)
        assert panel.formulation is formulation
        assert np.allclose(panel.geometry.vertices, SQUARE)

        panel.geometry = PanelGeometry(SKEWED, 100.0)
        assert panel.formulation is not formulation
        assert panel.formulation.geometry is panel.geometry

"""
Tests for the linear elastic shear panel.

The tests validate:
- Rectangular closed-form stiffness (1000 x 1000 mm reference panel)
- Agreement of the rectangular and general closed forms
- Degenerate general-form stiffness factors
- Symmetry and rank of the global stiffness
- Forces, average shear stress and truss-model principal stresses
- Global dof extraction and displacement contracts
"""

from types import SimpleNamespace

import numpy as np
import pytest

from spm_panel.core.errors import ContractViolationError, GeometryError
from spm_panel.core.material import Concrete, PanelReinforcement, Steel
from spm_panel.elements import Behavior, LinearPanel, Panel


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def concrete():
    """Concrete with Gc = 10000 MPa."""
    return Concrete(strength=30.0, elastic_modulus=24000.0)


@pytest.fixture
def reinforcement():
    steel = Steel(yield_stress=500.0, elastic_modulus=210000.0)
    return PanelReinforcement(bar_diameter=(8.0, 8.0), bar_spacing=(100.0, 100.0), steel=(steel, steel))


@pytest.fixture
def square_panel(concrete, reinforcement):
    return Panel(
        number=1,
        vertices=[[0, 0], [1000, 0], [1000, 1000], [0, 1000]],
        width=100.0,
        grips=[1, 4, 7, 10],
        concrete=concrete,
        reinforcement=reinforcement,
    )


@pytest.fixture
def rectangle_panel(concrete, reinforcement):
    return Panel(
        number=2,
        vertices=[[0, 0], [2000, 0], [2000, 1000], [0, 1000]],
        width=100.0,
        grips=[0, 1, 2, 3],
        concrete=concrete,
        reinforcement=reinforcement,
    )


@pytest.fixture
def skewed_panel(concrete, reinforcement):
    return Panel(
        number=3,
        vertices=[[0, 0], [1000, 100], [1100, 900], [-50, 800]],
        width=100.0,
        grips=[0, 1, 2, 3],
        concrete=concrete,
        reinforcement=reinforcement,
    )


def pure_shear_displacements(slip):
    """Grip displacements giving edge slips slip·[1, -1, 1, -1] on an axis-aligned panel."""
    return np.array([slip, 0, 0, -slip, -slip, 0, 0, slip], dtype=float)


# =============================================================================
# Stiffness
# =============================================================================

class TestLinearStiffness:
    """Tests for the linear panel stiffness matrices."""

    def test_formulation_type(self, square_panel):
        assert isinstance(square_panel.formulation, LinearPanel)
        assert square_panel.formulation.is_rectangular
        assert square_panel.integration_points == []

    def test_square_diagonal(self, square_panel):
        """Gc·w·a/b = 10000·100·1 on the diagonal."""
        K = square_panel.formulation.local_stiffness
        assert np.allclose(np.diag(K), 1.0e6)
        assert np.allclose(K, 1.0e6 * np.array([[1, -1, 1, -1], [-1, 1, -1, 1]] * 2))

    def test_square_global_diagonal(self, square_panel):
        K = square_panel.global_stiffness
        # Only the edge-parallel dof of each grip is stiff
        assert np.allclose(np.diag(K), [1e6, 0, 0, 1e6, 1e6, 0, 0, 1e6])

    def test_rectangle_ratios(self, rectangle_panel):
        K = rectangle_panel.formulation.local_stiffness
        Gw = 10000.0 * 100.0
        assert K[0, 0] == pytest.approx(Gw * 2.0)
        assert K[1, 1] == pytest.approx(Gw * 0.5)
        assert K[0, 1] == pytest.approx(-Gw)

    @pytest.mark.parametrize("panel_name", ["square_panel", "rectangle_panel"])
    def test_general_form_matches_rectangular(self, panel_name, request):
        formulation = request.getfixturevalue(panel_name).formulation
        assert np.allclose(formulation._general_stiffness(), formulation.local_stiffness)

    @pytest.mark.parametrize("panel_name", ["square_panel", "rectangle_panel", "skewed_panel"])
    def test_global_stiffness_symmetric(self, panel_name, request):
        K = request.getfixturevalue(panel_name).global_stiffness
        assert K.shape == (8, 8)
        assert np.allclose(K, K.T, rtol=1e-9, atol=1e-9 * np.abs(K).max())

    def test_skewed_uses_general_form(self, skewed_panel):
        formulation = skewed_panel.formulation
        assert not formulation.is_rectangular
        # Rank one shear lattice
        eigvals = np.linalg.eigvalsh(formulation.local_stiffness)
        assert np.sum(np.abs(eigvals) > 1e-9 * np.abs(eigvals).max()) == 1
        assert eigvals.max() > 0

    def test_vanishing_kf(self, skewed_panel, monkeypatch):
        formulation = skewed_panel.formulation
        geometry = formulation.geometry
        # Collinear vertices: every edge determinant is zero
        stub = SimpleNamespace(
            vertex_coordinates=(np.array([0.0, 1000.0, 2000.0, 3000.0]), np.zeros(4)),
            dimensions=geometry.dimensions,
            edge_lengths=geometry.edge_lengths,
            width=geometry.width,
        )
        monkeypatch.setattr(formulation, "geometry", stub)
        with np.errstate(divide="raise", invalid="raise"), pytest.raises(GeometryError, match="kf"):
            formulation._general_stiffness()

    def test_vanishing_ku(self, skewed_panel, monkeypatch):
        formulation = skewed_panel.formulation
        geometry = formulation.geometry
        stub = SimpleNamespace(
            vertex_coordinates=geometry.vertex_coordinates,
            dimensions=(0.0, 0.0, 0.0, 0.0),
            edge_lengths=geometry.edge_lengths,
            width=geometry.width,
        )
        monkeypatch.setattr(formulation, "geometry", stub)
        with np.errstate(divide="raise", invalid="raise"), pytest.raises(GeometryError, match="ku"):
            formulation._general_stiffness()

    def test_initial_equals_global(self, skewed_panel):
        assert np.allclose(skewed_panel.initial_stiffness, skewed_panel.global_stiffness)

    def test_tangent_is_global(self, skewed_panel):
        assert np.allclose(skewed_panel.tangent_stiffness(), skewed_panel.global_stiffness)

    def test_transformation_rows(self, square_panel):
        T = square_panel.formulation.transformation_matrix
        assert T.shape == (4, 8)
        for i in range(4):
            assert np.count_nonzero(T[i, 2 * i : 2 * i + 2]) == 1
            assert np.count_nonzero(T[i]) == 1


# =============================================================================
# Forces and stresses
# =============================================================================

class TestLinearForces:
    """Tests for linear panel forces and stresses."""

    def test_zero_displacement(self, square_panel):
        square_panel.analysis()
        assert np.array_equal(square_panel.forces, np.zeros(8))
        assert np.array_equal(square_panel.average_stresses, np.zeros(3))

    def test_forces_match_stiffness(self, skewed_panel):
        u = np.array([0.1, -0.2, 0.05, 0.3, -0.1, 0.0, 0.2, -0.05])
        skewed_panel.displacements = u
        skewed_panel.analysis()
        assert np.allclose(skewed_panel.forces, skewed_panel.global_stiffness @ u, atol=1e-5)

    def test_small_forces_coerced(self, square_panel):
        square_panel.displacements = pure_shear_displacements(1e-14)
        square_panel.analysis()
        assert np.array_equal(square_panel.formulation.local_forces, np.zeros(4))

    def test_rigid_translation(self, rectangle_panel):
        rectangle_panel.displacements = np.tile([0.3, -0.7], 4)
        rectangle_panel.analysis()
        assert np.allclose(rectangle_panel.forces, 0.0)

    def test_average_shear(self, square_panel):
        """Edge slips of 1.25 mm produce τ = -50 MPa on the 1000 mm square."""
        square_panel.displacements = pure_shear_displacements(1.25)
        square_panel.analysis()
        assert np.allclose(square_panel.formulation.shear_stresses, [50, -50, 50, -50])
        assert np.allclose(square_panel.average_stresses, [0, 0, -50])
        assert square_panel.max_force == pytest.approx(5.0e6)

    def test_truss_principal_stresses(self, square_panel):
        """Equal yield stresses and τ = -50 MPa give σ2 = -100 MPa at +45°."""
        square_panel.displacements = pure_shear_displacements(1.25)
        square_panel.analysis()
        principal, theta = square_panel.principal_stresses
        assert principal[1] == pytest.approx(-100.0)
        assert principal[0] == 0.0
        assert theta == pytest.approx(np.pi / 4)

    def test_forces_refer_to_last_analysis(self, square_panel):
        square_panel.displacements = pure_shear_displacements(1.0)
        assert np.array_equal(square_panel.forces, np.zeros(8))
        square_panel.analysis()
        assert np.any(square_panel.forces != 0)


# =============================================================================
# Dofs and contracts
# =============================================================================

class TestPanelDofs:
    """Tests for grip dofs and displacement contracts."""

    def test_dof_indices(self, square_panel):
        assert square_panel.dof_indices.tolist() == [2, 3, 8, 9, 14, 15, 20, 21]

    def test_set_displacements(self, square_panel):
        u = np.arange(22, dtype=float)
        square_panel.set_displacements(u)
        assert square_panel.displacements.tolist() == [2, 3, 8, 9, 14, 15, 20, 21]

    def test_global_vector_too_short(self, square_panel):
        with pytest.raises(ContractViolationError):
            square_panel.set_displacements(np.zeros(21))

    def test_wrong_displacement_length(self, square_panel):
        with pytest.raises(ContractViolationError):
            square_panel.displacements = np.zeros(6)

    @pytest.mark.parametrize("grips", [[0, 1, 2], [0, 1, 2, 3, 4], [0, -1, 2, 3]])
    def test_invalid_grips(self, concrete, grips):
        with pytest.raises(ContractViolationError):
            Panel(1, [[0, 0], [1, 0], [1, 1], [0, 1]], 1.0, grips, concrete)

    def test_grip_positions(self, rectangle_panel):
        assert np.allclose(rectangle_panel.grip_positions, [[1000, 0], [2000, 500], [1000, 1000], [0, 500]])

    def test_behavior_from_string(self, concrete):
        panel = Panel(1, [[0, 0], [1, 0], [1, 1], [0, 1]], 1.0, [0, 1, 2, 3], concrete, behavior="linear")
        assert panel.behavior is Behavior.LINEAR
        assert not panel.cracked

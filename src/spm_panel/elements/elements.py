import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from spm_panel.constitutive.membrane import (
    IntegrationPoint,
    MembraneFactory,
    get_membrane_model,
)
from spm_panel.core.config import AnalysisSettings
from spm_panel.core.errors import ComputationError, ContractViolationError
from spm_panel.core.geometry import PanelGeometry
from spm_panel.core.material import Concrete, PanelReinforcement
from spm_panel.core.stringer import Stringer, stringer_depth_corrections
from spm_panel.postprocess.stress_recovery import PointResult

logger = logging.getLogger(__name__)

DOFS_PER_GRIP = 2


class Behavior(str, Enum):
    """Panel behavior. Nonlinear values name the membrane model they use."""

    LINEAR = "linear"
    NONLINEAR_MCFT = "mcft"
    NONLINEAR_DSFM = "dsfm"

    @property
    def is_nonlinear(self) -> bool:
        return self is not Behavior.LINEAR


class PanelFormulation(ABC):
    """
    Stiffness and force computation of a panel for one behavior.

    A formulation keeps the displacements of the last ``analysis`` call;
    forces and stresses refer to that state.
    """

    behavior: Behavior = None

    def __init__(
        self,
        geometry: PanelGeometry,
        concrete: Concrete,
        reinforcement: PanelReinforcement,
        stringer_depth_corrections: np.ndarray,
        settings: AnalysisSettings,
    ):
        self.geometry = geometry
        self.concrete = concrete
        self.reinforcement = reinforcement
        self.stringer_depth_corrections = np.asarray(stringer_depth_corrections, dtype=float)
        self.settings = settings
        self.displacements = np.zeros(8)

    def analysis(self, displacements: np.ndarray):
        self.displacements = np.array(displacements, dtype=float)

    def results(self):
        """Accept the state of the last analysis."""

    @property
    @abstractmethod
    def global_stiffness(self) -> np.ndarray: ...

    @property
    def initial_stiffness(self) -> np.ndarray:
        return self.global_stiffness

    @property
    @abstractmethod
    def forces(self) -> np.ndarray: ...

    @property
    @abstractmethod
    def average_stresses(self) -> np.ndarray: ...

    @property
    @abstractmethod
    def principal_stresses(self) -> Tuple[np.ndarray, float]: ...

    @property
    def integration_points(self) -> List[IntegrationPoint]:
        return []

    def point_results(self) -> List[PointResult]:
        return []

    def snapshot(self):
        return self.displacements.copy()

    def restore(self, state):
        self.displacements = state

    def __repr__(self):
        return f"<{type(self).__name__} geometry={self.geometry}>"


class FormulationFactory:
    @staticmethod
    def get_formulation(
        behavior: Behavior,
        geometry: PanelGeometry,
        concrete: Concrete,
        reinforcement: PanelReinforcement,
        stringer_depth_corrections: np.ndarray,
        settings: AnalysisSettings,
        membrane_model: Union[str, MembraneFactory, None] = None,
    ) -> PanelFormulation:
        from .panel_linear import LinearPanel
        from .panel_nonlinear import NonlinearPanel

        args = (geometry, concrete, reinforcement, stringer_depth_corrections, settings)
        if behavior is Behavior.LINEAR:
            return LinearPanel(*args)

        if membrane_model is None:
            membrane_model = settings.membrane_model or behavior.value
        if isinstance(membrane_model, str):
            membrane_model = get_membrane_model(membrane_model)
        return NonlinearPanel(*args, behavior=behavior, membrane_factory=membrane_model)


class Panel:
    """
    Quadrilateral shear panel of a stringer-panel model.

    Parameters
    ----------
    number : int
        Panel number.
    vertices : array_like or PanelGeometry
        Four vertices ordered counterclockwise from the lower left, or a
        ready geometry (``width`` is then ignored).
    width : float
        Panel width.
    grips : Sequence[int]
        Node ids of the four grips (edge midpoints), zero-based.
    concrete : Concrete
        Concrete parameters.
    reinforcement : PanelReinforcement, optional
        Smeared reinforcement. Default is no reinforcement.
    behavior : Behavior, optional
        Linear or nonlinear behavior. Default is linear.
    stringers : Iterable[Stringer], optional
        Stringers of the model, searched once for the depth corrections.
    settings : AnalysisSettings, optional
        Numerical settings.
    membrane_model : str or callable, optional
        Membrane model name or factory for nonlinear behavior. Overrides
        the model implied by ``behavior`` and by ``settings``.
    """

    def __init__(
        self,
        number: int,
        vertices: Union[Sequence[Sequence[float]], np.ndarray, PanelGeometry],
        width: Optional[float],
        grips: Sequence[int],
        concrete: Concrete,
        reinforcement: Optional[PanelReinforcement] = None,
        behavior: Union[Behavior, str] = Behavior.LINEAR,
        stringers: Iterable[Stringer] = (),
        settings: Optional[AnalysisSettings] = None,
        membrane_model: Union[str, MembraneFactory, None] = None,
    ):
        if len(grips) != 4:
            raise ContractViolationError(f"Panel {number} needs 4 grips, got {len(grips)}")
        if any(int(g) < 0 for g in grips):
            raise ContractViolationError(f"Panel {number} grips must be non-negative: {list(grips)}")

        self.number = number
        self.grips = tuple(int(g) for g in grips)
        self.concrete = concrete
        self.reinforcement = reinforcement if reinforcement is not None else PanelReinforcement()
        self.settings = settings if settings is not None else AnalysisSettings()
        self.membrane_model = membrane_model
        self.stringer_depth_corrections = stringer_depth_corrections(self.grips, stringers)

        if isinstance(vertices, PanelGeometry):
            self._geometry = vertices
        else:
            self._geometry = PanelGeometry(vertices, width)
        self._behavior = Behavior(behavior)
        self._displacements = np.zeros(8)
        self.formulation = self._build_formulation(self._behavior, self._geometry)

    def _build_formulation(self, behavior: Behavior, geometry: PanelGeometry) -> PanelFormulation:
        formulation = FormulationFactory.get_formulation(
            behavior,
            geometry,
            self.concrete,
            self.reinforcement,
            self.stringer_depth_corrections,
            self.settings,
            self.membrane_model,
        )
        logger.debug("Panel %s: created %r", self.number, formulation)
        return formulation

    @property
    def geometry(self) -> PanelGeometry:
        return self._geometry

    @geometry.setter
    def geometry(self, geometry: PanelGeometry):
        self.formulation = self._build_formulation(self._behavior, geometry)
        self._geometry = geometry

    @property
    def behavior(self) -> Behavior:
        return self._behavior

    @behavior.setter
    def behavior(self, behavior: Union[Behavior, str]):
        behavior = Behavior(behavior)
        if behavior is self._behavior:
            return
        # Fresh integration points for the new behavior
        self.formulation = self._build_formulation(behavior, self._geometry)
        self._behavior = behavior

    @property
    def width(self) -> float:
        return self._geometry.width

    @property
    def dof_indices(self) -> np.ndarray:
        """Global dof indices (2·grip, 2·grip + 1) of the four grips."""
        return np.array(
            [DOFS_PER_GRIP * g + i for g in self.grips for i in range(DOFS_PER_GRIP)], dtype=int
        )

    @property
    def grip_positions(self) -> np.ndarray:
        return self._geometry.edge_midpoints

    @property
    def displacements(self) -> np.ndarray:
        """Local displacement vector (8,), ordered like ``dof_indices``."""
        return self._displacements

    @displacements.setter
    def displacements(self, value: np.ndarray):
        value = np.array(value, dtype=float).ravel()
        if value.shape != (8,):
            raise ContractViolationError(
                f"Panel {self.number} needs 8 displacements, got {value.size}"
            )
        self._displacements = value

    def set_displacements(self, global_displacements: np.ndarray):
        """Extract this panel's displacements from the global displacement vector."""
        global_displacements = np.asarray(global_displacements, dtype=float).ravel()
        indices = self.dof_indices
        if indices.max() >= global_displacements.size:
            raise ContractViolationError(
                f"Panel {self.number} dof {indices.max()} is outside the global "
                f"displacement vector of size {global_displacements.size}"
            )
        self._displacements = global_displacements[indices]

    def analysis(self):
        """Evaluate the state of the current displacements."""
        self.formulation.analysis(self._displacements)

    def results(self):
        """Commit the last analysed state (one call per accepted load step)."""
        self.formulation.results()

    @property
    def global_stiffness(self) -> np.ndarray:
        return self.formulation.global_stiffness

    @property
    def initial_stiffness(self) -> np.ndarray:
        return self.formulation.initial_stiffness

    @property
    def forces(self) -> np.ndarray:
        """Grip forces (8,) in global directions for the last analysed state."""
        return self.formulation.forces

    @property
    def max_force(self) -> float:
        return float(np.max(np.abs(self.forces)))

    @property
    def average_stresses(self) -> np.ndarray:
        return self.formulation.average_stresses

    @property
    def principal_stresses(self) -> Tuple[np.ndarray, float]:
        return self.formulation.principal_stresses

    @property
    def integration_points(self) -> List[IntegrationPoint]:
        return self.formulation.integration_points

    def point_results(self) -> List[PointResult]:
        return self.formulation.point_results()

    @property
    def cracked(self) -> bool:
        return any(p.cracked for p in self.integration_points)

    @property
    def crushed(self) -> bool:
        return any(p.crushed for p in self.integration_points)

    @property
    def yielded(self) -> bool:
        return any(p.yielded for p in self.integration_points)

    @contextmanager
    def _preserved_state(self):
        displacements = self._displacements.copy()
        state = self.formulation.snapshot()
        try:
            yield
        finally:
            self._displacements = displacements
            self.formulation.restore(state)

    def tangent_stiffness(self, step: Optional[float] = None) -> np.ndarray:
        """
        Tangent stiffness at the current displacements by central differences.

        Column j is (F(u + h·e_j) - F(u - h·e_j)) / 2h. Displacements and
        integration point states are restored afterwards, even on error.
        Linear panels return their global stiffness.

        Parameters
        ----------
        step : float, optional
            Perturbation h. Default is ``settings.tangent_step``.

        Raises
        ------
        ComputationError
            If a column is not finite.
        """
        if not self._behavior.is_nonlinear:
            return self.global_stiffness

        h = self.settings.tangent_step if step is None else step
        if h <= 0:
            raise ValueError(f"Tangent step must be positive: {h}")

        base = self._displacements.copy()
        tangent = np.zeros((8, 8))
        with self._preserved_state():
            for j in range(8):
                forward = base.copy()
                forward[j] += h
                self._displacements = forward
                self.analysis()
                f_forward = self.forces

                backward = base.copy()
                backward[j] -= h
                self._displacements = backward
                self.analysis()
                f_backward = self.forces

                column = (f_forward - f_backward) / (2 * h)
                if not np.all(np.isfinite(column)):
                    raise ComputationError(
                        f"Panel {self.number}: non-finite tangent stiffness column {j}"
                    )
                tangent[:, j] = column

        logger.debug("Panel %s: tangent stiffness evaluated (h=%g)", self.number, h)
        return tangent

    def __repr__(self):
        return f"<Panel number={self.number} grips={list(self.grips)} behavior={self._behavior.value}>"

"""
Membrane integration points.

An integration point turns a strain triple [εx, εy, γxy] into concrete and
reinforcement stresses and their secant stiffness matrices. Smeared-crack
laws (MCFT, DSFM) are plugged in from outside by subclassing
:class:`IntegrationPoint` and registering the class::

    @register_membrane_model("mcft")
    class MCFTMembrane(IntegrationPoint):
        def _evaluate(self, strains):
            ...

Contract
--------
- ``update(strains)`` evaluates a trial state. It must depend only on the
  strains and the committed history: calling it twice with the same strains
  returns the same response.
- ``commit()`` makes the current trial state the committed history. It is
  called once per accepted load step.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from spm_panel.core.errors import ComputationError, ContractViolationError
from spm_panel.core.material import Concrete, PanelReinforcement
from spm_panel.postprocess.stress_recovery import (
    principal_strain_angles,
    principal_strains,
    principal_stresses,
)

logger = logging.getLogger(__name__)


@dataclass
class MembraneResponse:
    """Stresses and secant stiffness of a membrane state."""

    concrete_stresses: np.ndarray
    reinforcement_stresses: np.ndarray
    concrete_stiffness: np.ndarray
    reinforcement_stiffness: np.ndarray

    @property
    def stresses(self) -> np.ndarray:
        return self.concrete_stresses + self.reinforcement_stresses

    def is_finite(self) -> bool:
        return all(
            np.all(np.isfinite(v))
            for v in (
                self.concrete_stresses,
                self.reinforcement_stresses,
                self.concrete_stiffness,
                self.reinforcement_stiffness,
            )
        )


class IntegrationPoint(ABC):
    """
    Base class of membrane material models evaluated at a panel integration point.

    Parameters
    ----------
    concrete : Concrete
        Concrete parameters.
    reinforcement : PanelReinforcement
        Smeared reinforcement of the panel.
    width : float
        Panel width, used for the reinforcement ratios.
    reference_length : float, optional
        Characteristic length of the panel (crack band models).

    Attributes
    ----------
    strains : np.ndarray
        Trial strains of the last ``update``.
    response : MembraneResponse or None
        Trial response of the last ``update``; None before the first one.
    load_step : int
        Number of committed steps.
    """

    def __init__(
        self,
        concrete: Concrete,
        reinforcement: PanelReinforcement,
        width: float,
        reference_length: Optional[float] = None,
    ):
        self.concrete = concrete
        self.reinforcement = reinforcement
        self.width = width
        self.reference_length = reference_length

        self.strains = np.zeros(3)
        self.response: Optional[MembraneResponse] = None
        self.committed_strains = np.zeros(3)
        self.committed_response: Optional[MembraneResponse] = None

        self.load_step = 0
        self.crack_load_step = 0
        self.crush_load_step = 0
        self.yield_load_step = (0, 0)

    @abstractmethod
    def _evaluate(self, strains: np.ndarray) -> MembraneResponse:
        """Response to ``strains`` given the committed history. Must not mutate it."""

    def update(self, strains: np.ndarray) -> MembraneResponse:
        """Evaluate the trial state for ``strains``.

        Raises
        ------
        ContractViolationError
            If ``strains`` is not a 3-vector.
        ComputationError
            If the material model returns non-finite values.
        """
        strains = np.array(strains, dtype=float)
        if strains.shape != (3,):
            raise ContractViolationError(f"Membrane strains must be a 3-vector, got {strains.shape}")

        response = self._evaluate(strains)
        if not response.is_finite():
            raise ComputationError(
                f"{type(self).__name__} returned non-finite stresses or stiffness "
                f"for strains {strains.tolist()}"
            )
        self.strains = strains
        self.response = response
        return response

    def commit(self):
        """Accept the trial state as committed history."""
        self.committed_strains = self.strains.copy()
        self.committed_response = self.response
        self.load_step += 1

        # Record the first step of each event
        if self.crack_load_step == 0 and self.cracked:
            self.crack_load_step = self.load_step
        if self.crush_load_step == 0 and self.crushed:
            self.crush_load_step = self.load_step
        yx, yy = self.yield_load_step
        x_yielded, y_yielded = self.yielded_directions
        if yx == 0 and x_yielded:
            yx = self.load_step
        if yy == 0 and y_yielded:
            yy = self.load_step
        self.yield_load_step = (yx, yy)

    @property
    def reinforcement_ratio(self) -> Tuple[float, float]:
        return self.reinforcement.ratio(self.width)

    @property
    def initial_concrete_stiffness(self) -> np.ndarray:
        """Uncracked concrete stiffness diag(Ec, Ec, Ec/2)."""
        Ec = self.concrete.Ec
        return np.diag([Ec, Ec, 0.5 * Ec])

    @property
    def initial_reinforcement_stiffness(self) -> np.ndarray:
        """Elastic smeared steel stiffness diag(ρx·Esx, ρy·Esy, 0)."""
        psx, psy = self.reinforcement_ratio
        steel_x, steel_y = self.reinforcement.steel
        return np.diag([psx * steel_x.elastic_modulus, psy * steel_y.elastic_modulus, 0.0])

    @property
    def initial_stiffness(self) -> np.ndarray:
        return self.initial_concrete_stiffness + self.initial_reinforcement_stiffness

    @property
    def concrete_stiffness(self) -> Optional[np.ndarray]:
        return None if self.response is None else self.response.concrete_stiffness

    @property
    def reinforcement_stiffness(self) -> Optional[np.ndarray]:
        return None if self.response is None else self.response.reinforcement_stiffness

    @property
    def concrete_stresses(self) -> np.ndarray:
        return np.zeros(3) if self.response is None else self.response.concrete_stresses

    @property
    def reinforcement_stresses(self) -> np.ndarray:
        return np.zeros(3) if self.response is None else self.response.reinforcement_stresses

    @property
    def stresses(self) -> np.ndarray:
        return self.concrete_stresses + self.reinforcement_stresses

    @property
    def principal_strains(self) -> Tuple[float, float]:
        return principal_strains(self.strains)

    @property
    def principal_angles(self) -> Tuple[float, float]:
        """Directions (θ1, θ2) of the principal strains."""
        return principal_strain_angles(self.strains)

    @property
    def concrete_principal_stresses(self) -> Tuple[float, float]:
        return principal_stresses(self.concrete_stresses)

    @property
    def cracked(self) -> bool:
        ec1, _ = self.principal_strains
        return ec1 >= self.concrete.ecr

    @property
    def crushed(self) -> bool:
        _, ec2 = self.principal_strains
        return ec2 <= self.concrete.ecu

    @property
    def yielded_directions(self) -> Tuple[bool, bool]:
        steel_x, steel_y = self.reinforcement.steel
        x_set = self.reinforcement.x_set and steel_x.is_set
        y_set = self.reinforcement.y_set and steel_y.is_set
        return (
            x_set and abs(self.strains[0]) >= steel_x.yield_strain,
            y_set and abs(self.strains[1]) >= steel_y.yield_strain,
        )

    @property
    def yielded(self) -> bool:
        return any(self.yielded_directions)

    def __repr__(self):
        return f"<{type(self).__name__} strains={self.strains.tolist()} load_step={self.load_step}>"


MembraneFactory = Callable[..., IntegrationPoint]
MEMBRANE_MODELS: Dict[str, MembraneFactory] = {}


def register_membrane_model(name: str):
    """Class decorator registering a membrane model under ``name``."""

    def decorator(factory: MembraneFactory) -> MembraneFactory:
        if name in MEMBRANE_MODELS and MEMBRANE_MODELS[name] is not factory:
            logger.warning("Membrane model '%s' replaced by %s", name, factory)
        MEMBRANE_MODELS[name] = factory
        return factory

    return decorator


def get_membrane_model(name: str) -> MembraneFactory:
    """Look up a registered membrane model.

    Raises
    ------
    ValueError
        If no model is registered under ``name``.
    """
    try:
        return MEMBRANE_MODELS[name]
    except KeyError:
        available = ", ".join(sorted(MEMBRANE_MODELS)) or "none"
        raise ValueError(
            f"No membrane model registered as '{name}' (available: {available})"
        ) from None


@register_membrane_model("elastic")
class LinearElasticMembrane(IntegrationPoint):
    """Uncracked membrane: concrete and steel keep their initial stiffness.

    Stresses are σc = Dc·ε and σs = Ds·ε with the initial stiffness
    matrices. The reinforcement never carries shear.
    """

    def _evaluate(self, strains: np.ndarray) -> MembraneResponse:
        Dc = self.initial_concrete_stiffness
        Ds = self.initial_reinforcement_stiffness
        return MembraneResponse(
            concrete_stresses=Dc @ strains,
            reinforcement_stresses=Ds @ strains,
            concrete_stiffness=Dc,
            reinforcement_stiffness=Ds,
        )

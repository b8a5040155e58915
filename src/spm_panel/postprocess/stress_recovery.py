"""
Stress and Strain Recovery for Panel Elements.

Principal values of membrane stress and strain states and the per-point
results handed to reporting layers (crack, crush and yield events).

Theory
------
For a plane state [x, y, xy] Mohr's circle gives

    center = (x + y) / 2
    radius = √(((x - y) / 2)² + xy²)
    p1 = center + radius,  p2 = center - radius

with xy the tensor shear component. Engineering shear strains γ are halved
first. The direction of p1 is θ1 = ½·atan2(2·xy, x - y); the direction of
p2 is θ1 + π/2, reported in (-π/2, π/2].

Linear panels carry only shear, so their principal stresses follow the
equilibrium plasticity truss model instead:

    σ2 = -|τ|·(√(fyx/fyy) + √(fyy/fyx))     (= -2|τ| for fyx = fyy)
    θ2 = +π/4 if τ <= 0 else -π/4

References
----------
- Blaauwendraad, J. (2010). "Plates and FEM: Surprises and Pitfalls".
- Nielsen, M.P. and Hoang, L.C. (2011). "Limit Analysis and Concrete
  Plasticity", 3rd Edition.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from spm_panel.core.errors import ComputationError


def _mohr(x: float, y: float, xy: float) -> Tuple[float, float]:
    center = 0.5 * (x + y)
    radius = np.hypot(0.5 * (x - y), xy)
    return center + radius, center - radius


def _angles(x: float, y: float, xy: float) -> Tuple[float, float]:
    theta1 = 0.5 * np.arctan2(2 * xy, x - y)
    theta2 = theta1 + 0.5 * np.pi
    if theta2 > 0.5 * np.pi:
        theta2 -= np.pi
    return float(theta1), float(theta2)


def principal_stresses(sigma: np.ndarray) -> Tuple[float, float]:
    """Principal stresses (σ1, σ2) of [σx, σy, τxy], σ1 >= σ2."""
    sx, sy, txy = sigma
    return _mohr(sx, sy, txy)


def principal_strains(epsilon: np.ndarray) -> Tuple[float, float]:
    """Principal strains (ε1, ε2) of [εx, εy, γxy], ε1 >= ε2."""
    ex, ey, gxy = epsilon
    return _mohr(ex, ey, 0.5 * gxy)


def principal_stress_angles(sigma: np.ndarray) -> Tuple[float, float]:
    """Directions (θ1, θ2) of the principal stresses of [σx, σy, τxy]."""
    sx, sy, txy = sigma
    return _angles(sx, sy, txy)


def principal_strain_angles(epsilon: np.ndarray) -> Tuple[float, float]:
    """Directions (θ1, θ2) of the principal strains of [εx, εy, γxy]."""
    ex, ey, gxy = epsilon
    return _angles(ex, ey, 0.5 * gxy)


def mohr_principal_stresses(sigma: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Principal stresses of an average stress state.

    Parameters
    ----------
    sigma : np.ndarray
        Stress vector [σx, σy, τxy].

    Returns
    -------
    principal : np.ndarray
        [σ1, σ2, 0]
    theta : float
        Direction of σ2 [rad].
    """
    sig1, sig2 = principal_stresses(sigma)
    _, theta2 = principal_stress_angles(sigma)
    return np.array([sig1, sig2, 0.0]), theta2


def truss_principal_stresses(tau: float, fyx: float, fyy: float) -> Tuple[np.ndarray, float]:
    """
    Principal stresses of a shear panel by the equilibrium plasticity truss model.

    Parameters
    ----------
    tau : float
        Average shear stress.
    fyx, fyy : float
        Yield stresses of the x and y reinforcement.

    Returns
    -------
    principal : np.ndarray
        [0, σ2, 0]
    theta : float
        Direction of σ2 [rad].

    Raises
    ------
    ComputationError
        If only one reinforcement direction has a yield stress.
    """
    if fyx == fyy:
        sig2 = -2 * abs(tau)
    else:
        if fyx <= 0 or fyy <= 0:
            raise ComputationError(
                f"Truss model needs yield stresses in both directions (fyx={fyx}, fyy={fyy})"
            )
        r = np.sqrt(fyx / fyy)
        sig2 = -abs(tau) * (r + 1 / r)

    theta = 0.25 * np.pi if tau <= 0 else -0.25 * np.pi
    return np.array([0.0, sig2, 0.0]), theta


@dataclass
class PointResult:
    """
    State of one integration point, as reported for visualization.

    Attributes
    ----------
    strains : np.ndarray
        [εx, εy, γxy]
    stresses : np.ndarray
        Total stresses [σx, σy, τxy]
    concrete_stresses : np.ndarray
        Concrete stresses [σcx, σcy, τcxy]
    reinforcement_stresses : np.ndarray
        Smeared reinforcement stresses [ρx·fsx, ρy·fsy, 0]
    principal_strains : Tuple[float, float]
        (ε1, ε2)
    concrete_principal_stresses : Tuple[float, float]
        (fc1, fc2)
    strain_angle : float
        Direction of ε2 [rad]
    cracked, crushed, yielded : bool
        Material event flags of the current state.
    """

    strains: np.ndarray
    stresses: np.ndarray
    concrete_stresses: np.ndarray
    reinforcement_stresses: np.ndarray
    principal_strains: Tuple[float, float]
    concrete_principal_stresses: Tuple[float, float]
    strain_angle: float
    cracked: bool = False
    crushed: bool = False
    yielded: bool = False

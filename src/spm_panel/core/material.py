"""
Material value objects for reinforced concrete panels.

Concrete parameters follow fib Model Code 2010. All stresses in MPa, lengths
in mm. The objects are immutable: integration points read them at
construction time and never modify them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np
from scipy.interpolate import Akima1DInterpolator

# Ultimate strains of high strength concrete classes C50 to C90 (MC2010)
_HSC_CLASSES = np.array([50.0, 55.0, 60.0, 70.0, 80.0, 90.0])
_HSC_ULTIMATE_STRAINS = np.array([-0.0034, -0.0034, -0.0033, -0.0032, -0.0031, -0.003])
_ULTIMATE_STRAIN_SPLINE = Akima1DInterpolator(_HSC_CLASSES, _HSC_ULTIMATE_STRAINS)


class AggregateType(str, Enum):
    """Coarse aggregate type, used for the elastic modulus factor αE."""

    BASALT = "basalt"
    QUARTZITE = "quartzite"
    LIMESTONE = "limestone"
    SANDSTONE = "sandstone"

    @property
    def alpha_e(self) -> float:
        if self is AggregateType.BASALT:
            return 1.2
        if self is AggregateType.QUARTZITE:
            return 1.0
        return 0.9


@dataclass(frozen=True)
class Concrete:
    """
    Concrete parameters.

    Parameters
    ----------
    strength : float
        Mean compressive strength fc [MPa] (positive value).
    aggregate_diameter : float
        Maximum aggregate diameter [mm].
    aggregate_type : AggregateType, optional
        Aggregate type. Default is quartzite.
    elastic_modulus : float, optional
        Initial elastic modulus [MPa]. When omitted it is estimated as
        Ec = 21500·αE·(fc/10)^(1/3).
    """

    strength: float
    aggregate_diameter: float = 20.0
    aggregate_type: AggregateType = AggregateType.QUARTZITE
    elastic_modulus: Optional[float] = None

    def __post_init__(self):
        if self.strength <= 0:
            raise ValueError(f"Concrete strength must be positive: {self.strength}")
        if self.aggregate_diameter <= 0:
            raise ValueError(f"Aggregate diameter must be positive: {self.aggregate_diameter}")
        if self.elastic_modulus is not None and self.elastic_modulus <= 0:
            raise ValueError(f"Elastic modulus must be positive: {self.elastic_modulus}")
        # Accept plain strings coming from configuration files
        object.__setattr__(self, "aggregate_type", AggregateType(self.aggregate_type))

    @property
    def Ec(self) -> float:
        """Initial elastic modulus [MPa]."""
        if self.elastic_modulus is not None:
            return self.elastic_modulus
        return 21500 * self.aggregate_type.alpha_e * (self.strength / 10) ** (1 / 3)

    @property
    def Gc(self) -> float:
        """Shear modulus used by the linear panel formulation [MPa]."""
        return self.Ec / 2.4

    @property
    def fcr(self) -> float:
        """Tensile (cracking) strength [MPa]."""
        if self.strength <= 50:
            return 0.3 * self.strength ** (2 / 3)
        return 2.12 * np.log(1 + 0.1 * self.strength)

    @property
    def ecr(self) -> float:
        """Cracking strain."""
        return self.fcr / self.Ec

    @property
    def ec(self) -> float:
        """Strain at peak compressive stress."""
        return -1.6e-3 * (self.strength / 10) ** 0.25

    @property
    def ecu(self) -> float:
        """Ultimate compressive strain."""
        if self.strength < 50:
            return -0.0035
        if self.strength >= 90:
            return -0.003
        return float(_ULTIMATE_STRAIN_SPLINE(self.strength))


@dataclass(frozen=True)
class Steel:
    """
    Reinforcing steel with an elastic-perfectly plastic law.

    Parameters
    ----------
    yield_stress : float
        Yield stress fy [MPa].
    elastic_modulus : float, optional
        Elastic modulus Es [MPa]. Default is 210000 MPa.
    """

    yield_stress: float
    elastic_modulus: float = 210000.0

    def __post_init__(self):
        if self.yield_stress < 0:
            raise ValueError(f"Yield stress must be non-negative: {self.yield_stress}")
        if self.elastic_modulus < 0:
            raise ValueError(f"Elastic modulus must be non-negative: {self.elastic_modulus}")

    @property
    def is_set(self) -> bool:
        return self.yield_stress > 0 and self.elastic_modulus > 0

    @property
    def yield_strain(self) -> float:
        if not self.is_set:
            return 0.0
        return self.yield_stress / self.elastic_modulus


@dataclass(frozen=True)
class PanelReinforcement:
    """
    Orthogonal smeared reinforcement of a panel.

    Parameters
    ----------
    bar_diameter : Tuple[float, float]
        Bar diameters in x and y directions [mm]. Zero means no bars.
    bar_spacing : Tuple[float, float]
        Bar spacings in x and y directions [mm].
    steel : Tuple[Steel, Steel]
        Steel of the x and y bars.

    Notes
    -----
    Bars are placed on both faces, so the reinforcement ratio of a
    direction is ρ = 2·(π·φ²/4) / (s·w).
    """

    bar_diameter: Tuple[float, float] = (0.0, 0.0)
    bar_spacing: Tuple[float, float] = (0.0, 0.0)
    steel: Tuple[Steel, Steel] = field(default_factory=lambda: (Steel(0.0), Steel(0.0)))

    def __post_init__(self):
        if len(self.bar_diameter) != 2 or len(self.bar_spacing) != 2 or len(self.steel) != 2:
            raise ValueError("Reinforcement needs x and y values for diameter, spacing and steel")
        object.__setattr__(self, "bar_diameter", tuple(float(v) for v in self.bar_diameter))
        object.__setattr__(self, "bar_spacing", tuple(float(v) for v in self.bar_spacing))
        object.__setattr__(self, "steel", tuple(self.steel))

    @property
    def x_set(self) -> bool:
        return self.bar_diameter[0] > 0 and self.bar_spacing[0] > 0

    @property
    def y_set(self) -> bool:
        return self.bar_diameter[1] > 0 and self.bar_spacing[1] > 0

    @property
    def is_set(self) -> bool:
        return self.x_set or self.y_set

    def ratio(self, width: float) -> Tuple[float, float]:
        """Reinforcement ratios (ρx, ρy) for a panel of the given width."""
        psx = psy = 0.0
        if self.x_set:
            psx = 0.5 * np.pi * self.bar_diameter[0] ** 2 / (self.bar_spacing[0] * width)
        if self.y_set:
            psy = 0.5 * np.pi * self.bar_diameter[1] ** 2 / (self.bar_spacing[1] * width)
        return psx, psy

    @property
    def yield_stresses(self) -> Tuple[float, float]:
        return self.steel[0].yield_stress, self.steel[1].yield_stress

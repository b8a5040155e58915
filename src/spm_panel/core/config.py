"""
Panel Model Configuration Module.

YAML-based description of a set of panels, their materials and the
stringers around them, so a model can be built without writing Python code.

Example YAML configuration:
    concrete:
      strength: 30.0
      aggregate_diameter: 20.0

    stringers:
      - number: 1
        grips: [0, 1, 2]
        height: 100.0

    panels:
      - number: 1
        vertices: [[0, 0], [1000, 0], [1000, 1000], [0, 1000]]
        width: 100.0
        grips: [1, 4, 7, 10]
        behavior: "linear"
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

import yaml

from spm_panel.core.material import AggregateType, Concrete, PanelReinforcement, Steel
from spm_panel.core.stringer import Stringer

if TYPE_CHECKING:
    from spm_panel.elements.elements import Panel

logger = logging.getLogger(__name__)

BEHAVIORS = ("linear", "mcft", "dsfm")


# =============================================================================
# Numerical settings
# =============================================================================


@dataclass
class AnalysisSettings:
    """Numerical settings shared by the panels of a model.

    Parameters
    ----------
    tangent_step : float
        Absolute displacement perturbation of the finite-difference tangent.
    force_tolerance : float
        Linear panel forces below this magnitude are set to zero.
    rectangular_tolerance : float
        Tolerance [rad] on the 90° corner angles of a rectangular panel.
    membrane_model : str, optional
        Registered membrane model used by every nonlinear panel instead of
        the one implied by its behavior.
    """

    tangent_step: float = 1e-12
    force_tolerance: float = 1e-6
    rectangular_tolerance: float = 1e-3
    membrane_model: Optional[str] = None

    def __post_init__(self):
        if self.tangent_step <= 0:
            raise ValueError(f"tangent_step must be positive: {self.tangent_step}")
        if self.force_tolerance < 0:
            raise ValueError(f"force_tolerance must be non-negative: {self.force_tolerance}")
        if self.rectangular_tolerance <= 0:
            raise ValueError(
                f"rectangular_tolerance must be positive: {self.rectangular_tolerance}"
            )


# =============================================================================
# Configuration Data Classes
# =============================================================================


@dataclass
class ConcreteConfig:
    """Concrete configuration."""

    strength: float
    aggregate_diameter: float = 20.0
    aggregate_type: str = AggregateType.QUARTZITE.value
    elastic_modulus: Optional[float] = None

    def __post_init__(self):
        valid = [t.value for t in AggregateType]
        if self.aggregate_type not in valid:
            raise ValueError(f"Invalid aggregate type: {self.aggregate_type}. Valid: {valid}")

    def build(self) -> Concrete:
        return Concrete(
            strength=float(self.strength),
            aggregate_diameter=float(self.aggregate_diameter),
            aggregate_type=AggregateType(self.aggregate_type),
            elastic_modulus=None if self.elastic_modulus is None else float(self.elastic_modulus),
        )


@dataclass
class SteelConfig:
    """Steel configuration of one bar direction."""

    yield_stress: float = 0.0
    elastic_modulus: float = 210000.0

    def build(self) -> Steel:
        return Steel(float(self.yield_stress), float(self.elastic_modulus))


@dataclass
class ReinforcementConfig:
    """Smeared reinforcement configuration."""

    bar_diameter: List[float] = field(default_factory=lambda: [0.0, 0.0])
    bar_spacing: List[float] = field(default_factory=lambda: [0.0, 0.0])
    steel_x: SteelConfig = field(default_factory=SteelConfig)
    steel_y: SteelConfig = field(default_factory=SteelConfig)

    def __post_init__(self):
        if len(self.bar_diameter) != 2:
            raise ValueError("bar_diameter must have 2 components (x, y)")
        if len(self.bar_spacing) != 2:
            raise ValueError("bar_spacing must have 2 components (x, y)")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReinforcementConfig":
        if not data:
            return cls()
        steel = data.get("steel", {})
        return cls(
            bar_diameter=list(data.get("bar_diameter", [0.0, 0.0])),
            bar_spacing=list(data.get("bar_spacing", [0.0, 0.0])),
            steel_x=SteelConfig(**steel.get("x", {})),
            steel_y=SteelConfig(**steel.get("y", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bar_diameter": list(self.bar_diameter),
            "bar_spacing": list(self.bar_spacing),
            "steel": {
                "x": {
                    "yield_stress": self.steel_x.yield_stress,
                    "elastic_modulus": self.steel_x.elastic_modulus,
                },
                "y": {
                    "yield_stress": self.steel_y.yield_stress,
                    "elastic_modulus": self.steel_y.elastic_modulus,
                },
            },
        }

    def build(self) -> PanelReinforcement:
        return PanelReinforcement(
            bar_diameter=tuple(self.bar_diameter),
            bar_spacing=tuple(self.bar_spacing),
            steel=(self.steel_x.build(), self.steel_y.build()),
        )


@dataclass
class StringerConfig:
    """Stringer configuration (only what panels need)."""

    number: int
    grips: List[int]
    height: float

    def __post_init__(self):
        if len(self.grips) != 3:
            raise ValueError(f"Stringer {self.number} needs 3 grips, got {len(self.grips)}")
        if self.height < 0:
            raise ValueError(f"Stringer {self.number} height must be non-negative: {self.height}")

    def build(self) -> Stringer:
        return Stringer(number=int(self.number), grips=tuple(self.grips), height=float(self.height))


@dataclass
class PanelConfig:
    """Panel configuration."""

    number: int
    vertices: List[List[float]]
    width: float
    grips: List[int]
    behavior: str = "linear"
    reinforcement: ReinforcementConfig = field(default_factory=ReinforcementConfig)

    def __post_init__(self):
        if len(self.vertices) != 4:
            raise ValueError(f"Panel {self.number} needs 4 vertices, got {len(self.vertices)}")
        if len(self.grips) != 4:
            raise ValueError(f"Panel {self.number} needs 4 grips, got {len(self.grips)}")
        if self.width <= 0:
            raise ValueError(f"Panel {self.number} width must be positive: {self.width}")
        if self.behavior not in BEHAVIORS:
            raise ValueError(f"Invalid panel behavior: {self.behavior}. Valid: {list(BEHAVIORS)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "vertices": [list(v) for v in self.vertices],
            "width": self.width,
            "grips": list(self.grips),
            "behavior": self.behavior,
            "reinforcement": self.reinforcement.to_dict(),
        }


@dataclass
class PanelModelConfig:
    """Complete panel model configuration."""

    concrete: ConcreteConfig
    panels: List[PanelConfig]
    stringers: List[StringerConfig] = field(default_factory=list)
    analysis: AnalysisSettings = field(default_factory=AnalysisSettings)

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "PanelModelConfig":
        """Load configuration from YAML file.

        Parameters
        ----------
        yaml_path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        PanelModelConfig
            Parsed configuration object.

        Raises
        ------
        FileNotFoundError
            If the configuration file does not exist.
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f)

        config = cls.from_dict(data)
        logger.info("Configuration loaded successfully from %s", yaml_path)
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PanelModelConfig":
        """Create configuration from dictionary.

        Parameters
        ----------
        data : dict
            Configuration dictionary.

        Returns
        -------
        PanelModelConfig
            Parsed configuration object.
        """
        if not data or "concrete" not in data:
            raise ValueError("Configuration requires a 'concrete' section")
        if not data.get("panels"):
            raise ValueError("Configuration requires at least one panel")

        concrete_config = ConcreteConfig(**data["concrete"])

        stringers = [
            StringerConfig(
                number=s["number"],
                grips=list(s["grips"]),
                height=float(s["height"]),
            )
            for s in data.get("stringers") or []
        ]

        panels = []
        for p in data["panels"]:
            panels.append(
                PanelConfig(
                    number=p["number"],
                    vertices=[list(map(float, v)) for v in p["vertices"]],
                    width=float(p["width"]),
                    grips=list(p["grips"]),
                    behavior=p.get("behavior", "linear"),
                    reinforcement=ReinforcementConfig.from_dict(p.get("reinforcement")),
                )
            )

        analysis_data = data.get("analysis") or {}
        analysis = AnalysisSettings(
            tangent_step=float(analysis_data.get("tangent_step", 1e-12)),
            force_tolerance=float(analysis_data.get("force_tolerance", 1e-6)),
            rectangular_tolerance=float(analysis_data.get("rectangular_tolerance", 1e-3)),
            membrane_model=analysis_data.get("membrane_model"),
        )

        return cls(
            concrete=concrete_config,
            panels=panels,
            stringers=stringers,
            analysis=analysis,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        result = {
            "concrete": {
                "strength": self.concrete.strength,
                "aggregate_diameter": self.concrete.aggregate_diameter,
                "aggregate_type": self.concrete.aggregate_type,
            },
            "analysis": {
                "tangent_step": self.analysis.tangent_step,
                "force_tolerance": self.analysis.force_tolerance,
                "rectangular_tolerance": self.analysis.rectangular_tolerance,
            },
            "stringers": [
                {"number": s.number, "grips": list(s.grips), "height": s.height}
                for s in self.stringers
            ],
            "panels": [p.to_dict() for p in self.panels],
        }

        # Add optional values
        if self.concrete.elastic_modulus is not None:
            result["concrete"]["elastic_modulus"] = self.concrete.elastic_modulus
        if self.analysis.membrane_model is not None:
            result["analysis"]["membrane_model"] = self.analysis.membrane_model

        return result

    def save_yaml(self, yaml_path: Union[str, Path]) -> None:
        """Save configuration to YAML file.

        Parameters
        ----------
        yaml_path : str or Path
            Path to the output YAML file.
        """
        with open(yaml_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        logger.info("Configuration saved to %s", yaml_path)

    def validate(self) -> List[str]:
        """Validate the complete configuration.

        Returns
        -------
        list of str
            List of validation warnings (empty if all OK).
        """
        warnings = []

        numbers = [p.number for p in self.panels]
        if len(set(numbers)) != len(numbers):
            warnings.append("Panel numbers are not unique")

        middle_grips = {s.grips[1] for s in self.stringers}
        for panel in self.panels:
            if panel.behavior != "linear":
                reinforcement = panel.reinforcement.build()
                if not reinforcement.is_set:
                    warnings.append(f"Nonlinear panel {panel.number} has no reinforcement")
            if self.stringers:
                loose = [g for g in panel.grips if g not in middle_grips]
                if loose:
                    warnings.append(
                        f"Panel {panel.number} grips {loose} are not the middle grip of any stringer"
                    )

        for message in warnings:
            logger.warning(message)
        return warnings

    def build_panels(self) -> List["Panel"]:
        """Create the panel elements described by this configuration.

        Stringer-depth corrections are computed once per panel here.
        """
        from spm_panel.elements.elements import Behavior, Panel

        concrete = self.concrete.build()
        stringers = [s.build() for s in self.stringers]

        panels = [
            Panel(
                number=p.number,
                vertices=p.vertices,
                width=p.width,
                grips=p.grips,
                concrete=concrete,
                reinforcement=p.reinforcement.build(),
                behavior=Behavior(p.behavior),
                stringers=stringers,
                settings=self.analysis,
            )
            for p in self.panels
        ]
        logger.info("Built %d panels (%d stringers)", len(panels), len(stringers))
        return panels

    def __str__(self) -> str:
        """Human-readable string representation."""
        lines = [
            "Panel Model Configuration",
            "=" * 40,
            f"Concrete: fc={self.concrete.strength} MPa, "
            f"aggregate={self.concrete.aggregate_type} ({self.concrete.aggregate_diameter} mm)",
            f"Stringers: {len(self.stringers)}",
            f"Panels: {len(self.panels)}",
        ]
        for behavior in BEHAVIORS:
            count = sum(1 for p in self.panels if p.behavior == behavior)
            if count:
                lines.append(f"  {behavior}: {count}")
        lines.append(f"Tangent step: {self.analysis.tangent_step}")
        return "\n".join(lines)

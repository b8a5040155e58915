"""
Core module for spm-panel.

Provides panel geometry, materials, stringer data, errors and configuration.
"""

from .config import AnalysisSettings, PanelModelConfig
from .errors import ComputationError, ContractViolationError, GeometryError, PanelError
from .geometry import PanelGeometry
from .material import AggregateType, Concrete, PanelReinforcement, Steel
from .stringer import Stringer, stringer_depth_corrections

__all__ = [
    "AnalysisSettings",
    "PanelModelConfig",
    "PanelError",
    "GeometryError",
    "ComputationError",
    "ContractViolationError",
    "PanelGeometry",
    "AggregateType",
    "Concrete",
    "Steel",
    "PanelReinforcement",
    "Stringer",
    "stringer_depth_corrections",
]

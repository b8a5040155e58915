from .elements import Behavior, FormulationFactory, Panel, PanelFormulation
from .panel_linear import LinearPanel
from .panel_nonlinear import NonlinearPanel

__all__ = [
    "Behavior",
    "FormulationFactory",
    "Panel",
    "PanelFormulation",
    "LinearPanel",
    "NonlinearPanel",
]

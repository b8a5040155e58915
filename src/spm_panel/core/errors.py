"""
Exceptions raised by the panel element core.

All of them are fatal for the call (or element) that raised them and are
surfaced to the caller unchanged; nothing in this package recovers from them.
"""


class PanelError(Exception):
    """Base class for panel element errors."""


class GeometryError(PanelError, ValueError):
    """Degenerate panel geometry (collinear, self-intersecting, zero denominators)."""


class ComputationError(PanelError, ArithmeticError):
    """Non-finite value produced by a material evaluation or a finite-difference tangent."""


class ContractViolationError(PanelError, ValueError):
    """Wrongly sized input handed to the element (displacements, grips, strains)."""

"""
Stringer-panel model panel elements.

Linear and nonlinear quadrilateral shear panels for reinforced concrete
stringer-panel models.
"""

__version__ = "0.1.0"

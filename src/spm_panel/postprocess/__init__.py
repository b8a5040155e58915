from .stress_recovery import (
    PointResult,
    mohr_principal_stresses,
    principal_strain_angles,
    principal_strains,
    principal_stress_angles,
    principal_stresses,
    truss_principal_stresses,
)

__all__ = [
    "PointResult",
    "mohr_principal_stresses",
    "principal_strain_angles",
    "principal_strains",
    "principal_stress_angles",
    "principal_stresses",
    "truss_principal_stresses",
]

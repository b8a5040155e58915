from .membrane import (
    MEMBRANE_MODELS,
    IntegrationPoint,
    LinearElasticMembrane,
    MembraneResponse,
    get_membrane_model,
    register_membrane_model,
)

__all__ = [
    "MEMBRANE_MODELS",
    "IntegrationPoint",
    "LinearElasticMembrane",
    "MembraneResponse",
    "get_membrane_model",
    "register_membrane_model",
]

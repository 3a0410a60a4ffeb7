"""Integration of translated peptides into reference proteins.

Example:
    >>> from spliceforge.homology import AlignmentIntegrator
    >>> integrator = AlignmentIntegrator()
"""

from spliceforge.homology.integrate import (
    AlignmentIntegrator,
    AlignmentSummary,
    IntegrationRecord,
)

__all__: list[str] = [
    "AlignmentIntegrator",
    "AlignmentSummary",
    "IntegrationRecord",
]

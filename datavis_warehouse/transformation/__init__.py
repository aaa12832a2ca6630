"""
Dimension Transformation Module
"""
from .dimensions import (
    DimensionResolver,
    canonical_age_group,
    canonical_country_name,
    canonical_gender,
)

__all__ = [
    "DimensionResolver",
    "canonical_age_group",
    "canonical_country_name",
    "canonical_gender",
]

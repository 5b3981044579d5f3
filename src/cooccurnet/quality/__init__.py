"""
Quality control for abundance tables.

Components:
    AbundanceFilter: Removes zero/low-depth samples and rare organisms
        before normalization and correlation testing.
"""

from cooccurnet.quality.filtering import AbundanceFilter, AbundanceFilterResult

__all__ = [
    'AbundanceFilter',
    'AbundanceFilterResult',
]

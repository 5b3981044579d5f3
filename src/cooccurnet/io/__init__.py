"""
Input/output for abundance tables and comparison results.

Modules:
    loaders: CSV/TSV abundance tables and sample metadata -> AbundanceMatrix
    writers: topology table, edge lists, community membership, run config
"""

from cooccurnet.io.loaders import (
    load_abundance_matrix,
    load_sample_metadata,
    attach_sample_metadata,
)
from cooccurnet.io.writers import (
    safe_filename,
    category_stems,
    write_topology_table,
    write_edge_lists,
    write_community_membership,
    write_comparison,
)

__all__ = [
    'load_abundance_matrix',
    'load_sample_metadata',
    'attach_sample_metadata',
    'safe_filename',
    'category_stems',
    'write_topology_table',
    'write_edge_lists',
    'write_community_membership',
    'write_comparison',
]

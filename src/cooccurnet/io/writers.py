"""
Export of comparison results.

Layout written by write_comparison():

    <output_dir>/
        topology.csv              one row per category
        edges/<category>.csv      source, target, weight, p_value
        communities/<category>.csv  organism, community (when detected)
        run_config.json           parameters and run summary

Category labels that sanitize to the same stem are disambiguated with
numeric suffixes; run_config.json records the label -> stem mapping.
All files go through the atomic writers in cooccurnet.utils.fileio.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from cooccurnet.network.builder import graph_to_edge_frame
from cooccurnet.network.comparator import ComparisonResult
from cooccurnet.network.modularity import CommunityPartition
from cooccurnet.utils.fileio import atomic_write_csv, atomic_write_json

logger = logging.getLogger(__name__)

__all__ = [
    'safe_filename',
    'category_stems',
    'write_topology_table',
    'write_edge_lists',
    'write_community_membership',
    'write_comparison',
]

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


def safe_filename(label: str) -> str:
    """Filesystem-safe stem for a category label."""
    stem = _UNSAFE_CHARS.sub('_', str(label)).strip('._')
    return stem or 'category'


def category_stems(categories: Iterable[str]) -> Dict[str, str]:
    """
    Map each category label to a unique file stem.

    Labels that sanitize to the same stem get ``_2``, ``_3``... suffixes in
    sorted label order, so no category's file overwrites another's.
    """
    stems: Dict[str, str] = {}
    used = set()
    for category in sorted(categories, key=str):
        base = safe_filename(category)
        stem = base
        suffix = 2
        while stem.lower() in used:
            stem = f"{base}_{suffix}"
            suffix += 1
        if stem != base:
            logger.warning(
                f"Category '{category}' collides with another label on file stem "
                f"'{base}'; writing it as '{stem}'"
            )
        used.add(stem.lower())
        stems[category] = stem
    return stems


def write_topology_table(result: ComparisonResult, path: Path,
                         sort_by: Optional[str] = None) -> pd.DataFrame:
    """Write the comparison table and return it."""
    frame = result.to_frame(sort_by=sort_by, ascending=False)
    atomic_write_csv(path, frame)
    logger.info(f"Wrote topology table ({len(frame)} categories) to {path}")
    return frame


def write_edge_lists(result: ComparisonResult, output_dir: Path,
                     stems: Optional[Dict[str, str]] = None) -> Dict[str, Path]:
    """Write one edge list per category that produced a graph."""
    output_dir = Path(output_dir)
    if stems is None:
        stems = category_stems(result.categories)
    output_dir.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}
    for category, graph in result.graphs.items():
        path = output_dir / f"{stems[category]}.csv"
        atomic_write_csv(path, graph_to_edge_frame(graph))
        written[category] = path
    logger.info(f"Wrote {len(written)} edge lists to {output_dir}")
    return written


def _membership_frame(partition: CommunityPartition) -> pd.DataFrame:
    rows = [
        {'organism': str(node), 'community': cid}
        for cid, members in enumerate(partition.communities)
        for node in sorted(members, key=str)
    ]
    return pd.DataFrame(rows, columns=['organism', 'community'])


def write_community_membership(result: ComparisonResult, output_dir: Path,
                               stems: Optional[Dict[str, str]] = None) -> Dict[str, Path]:
    """Write organism -> community assignments for every partitioned category."""
    output_dir = Path(output_dir)
    if stems is None:
        stems = category_stems(result.categories)
    written: Dict[str, Path] = {}
    for category in result.categories:
        partition = result.results[category].partition
        if partition is None:
            continue
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / f"{stems[category]}.csv"
        atomic_write_csv(path, _membership_frame(partition))
        written[category] = path
    return written


def write_comparison(
    result: ComparisonResult,
    output_dir: Path,
    run_info: Optional[Dict[str, Any]] = None,
    sort_by: Optional[str] = 'modularity',
) -> Dict[str, Any]:
    """
    Write the full result layout under output_dir.

    Args:
        result: Comparator output
        output_dir: Destination directory (created if missing)
        run_info: Extra entries merged into run_config.json (inputs, CLI args)
        sort_by: Topology table sort column (descending)

    Returns:
        Dict with the written paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    topology_path = output_dir / 'topology.csv'
    write_topology_table(result, topology_path, sort_by=sort_by)
    stems = category_stems(result.categories)
    edge_paths = write_edge_lists(result, output_dir / 'edges', stems=stems)
    community_paths = write_community_membership(result, output_dir / 'communities', stems=stems)

    config = {
        'parameters': result.parameters,
        'categories': result.categories,
        'failures': result.failures,
        'files': stems,
    }
    if run_info:
        config.update(run_info)
    config_path = output_dir / 'run_config.json'
    atomic_write_json(config_path, config)

    return {
        'topology': topology_path,
        'edges': edge_paths,
        'communities': community_paths,
        'run_config': config_path,
    }

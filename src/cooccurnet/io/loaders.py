"""
CSV loaders for abundance tables and sample metadata.

Expected abundance table layout:
    - First column: organism IDs (taxa, OTUs, gene cluster families)
    - Remaining columns: sample IDs (headers) with non-negative counts

    ```
    "","S001","S002","S003"
    "Bacteroides",120,0,33
    "Prevotella",4,18,0
    ```

Expected sample metadata layout:
    - First column: sample IDs matching the abundance table headers
    - Remaining columns: annotations, one of which holds the environmental
      category (e.g. "biome")

Examples:
    >>> from pathlib import Path
    >>> from cooccurnet.io.loaders import load_abundance_matrix
    >>>
    >>> matrix = load_abundance_matrix(Path("counts.csv"), metadata_path=Path("samples.csv"))
    >>> print(matrix.sample_metadata['biome'].value_counts())
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
import warnings
import numpy as np
import pandas as pd

from cooccurnet.core.abundance import AbundanceMatrix
from cooccurnet.core.quality import QualityFlag

__all__ = ['load_abundance_matrix', 'load_sample_metadata', 'attach_sample_metadata']


def _read_indexed_csv(path: Path, kind: str) -> pd.DataFrame:
    if not isinstance(path, Path):
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")

    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    sep = "\t" if path.suffix.lower() in (".tsv", ".txt") else ","
    try:
        df = pd.read_csv(path, index_col=0, sep=sep)
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"{kind} file is empty: {path}") from e
    except pd.errors.ParserError as e:
        raise ValueError(f"Failed to parse {kind} file {path}: {e}") from e

    if df.index.duplicated().any():
        n_duplicates = int(df.index.duplicated().sum())
        warnings.warn(
            f"Found {n_duplicates} duplicate row IDs in {path.name}. "
            "Using first occurrence of each.",
            UserWarning
        )
        df = df[~df.index.duplicated(keep='first')]

    df.index = df.index.astype(str)
    return df


def load_sample_metadata(path: Path) -> pd.DataFrame:
    """
    Load a sample metadata table indexed by sample ID.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is empty or malformed
    """
    df = _read_indexed_csv(path, "Metadata")
    df.index.name = "sample_id"
    return df


def attach_sample_metadata(matrix: AbundanceMatrix, metadata: pd.DataFrame) -> AbundanceMatrix:
    """
    Align a metadata table to the matrix samples.

    Samples missing from the metadata get NaN annotations (and therefore no
    category); a warning reports how many.
    """
    metadata = metadata.copy()
    metadata.index = metadata.index.astype(str)
    missing = matrix.sample_ids.difference(metadata.index)
    if len(missing):
        warnings.warn(
            f"{len(missing)} samples have no metadata row and will not be assigned "
            f"a category: {list(missing[:5])}",
            UserWarning
        )
    aligned = metadata.reindex(matrix.sample_ids)
    return AbundanceMatrix(
        data=matrix.data,
        organism_ids=matrix.organism_ids,
        sample_ids=matrix.sample_ids,
        sample_metadata=aligned,
        quality_flags=matrix.quality_flags,
    )


def load_abundance_matrix(
    path: Path,
    metadata_path: Optional[Path] = None,
    transpose: bool = False,
) -> AbundanceMatrix:
    """
    Load a CSV/TSV abundance table into an AbundanceMatrix.

    Args:
        path: Abundance table (organisms x samples unless transpose=True)
        metadata_path: Optional sample metadata table
        transpose: The file is samples x organisms

    Returns:
        AbundanceMatrix with all quality flags ORIGINAL

    Raises:
        FileNotFoundError: If a file does not exist
        ValueError: If the table is empty, non-numeric, or has missing values
        InputError: If counts are negative or infinite
    """
    df = _read_indexed_csv(path, "Abundance")
    if transpose:
        df = df.T

    if df.shape[0] == 0:
        raise ValueError(f"Abundance table contains no organisms (rows): {path}")
    if df.shape[1] == 0:
        raise ValueError(f"Abundance table contains no samples (columns): {path}")

    if df.columns.duplicated().any():
        n_duplicates = int(df.columns.duplicated().sum())
        warnings.warn(
            f"Found {n_duplicates} duplicate sample IDs. Using first occurrence of each.",
            UserWarning
        )
        df = df.loc[:, ~df.columns.duplicated(keep='first')]

    try:
        data = df.values.astype(float)
    except ValueError as e:
        raise ValueError(f"Abundance table contains non-numeric values: {path}") from e

    if np.isnan(data).any():
        n_nan = int(np.isnan(data).sum())
        raise ValueError(
            f"Abundance table contains {n_nan} missing values. "
            "Counts must be complete (use 0 for non-detection)."
        )

    matrix = AbundanceMatrix(
        data=data,
        organism_ids=pd.Index(df.index.astype(str)),
        sample_ids=pd.Index(df.columns.astype(str)),
        sample_metadata=pd.DataFrame(index=pd.Index(df.columns.astype(str))),
        quality_flags=np.full(data.shape, QualityFlag.ORIGINAL, dtype=int),
    )

    if metadata_path is not None:
        matrix = attach_sample_metadata(matrix, load_sample_metadata(metadata_path))

    return matrix

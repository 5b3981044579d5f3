"""
Core data structure for organism abundance tables.

AbundanceMatrix unifies the count table (organisms x samples) with sample
metadata (environmental category, site, depth...) and per-value quality flags.

Ecological Context:
    Abundance tables are the input of every co-occurrence analysis:
    - Rows = organisms (taxa, OTUs, gene cluster families)
    - Columns = samples (sites, time points, replicates)
    - Values = non-negative counts (reads, detections)

    Samples are grouped by an environmental category held in the sample
    metadata. Each category yields its own co-occurrence network, so the
    matrix must support cheap, annotation-preserving column subsets.

Engineering Design:
    - Immutable: Operations return new instances (functional style)
    - Validated: Constructor checks shapes and the count contract
      (no negative, no non-finite values)
    - NumPy arrays for data, Pandas for identifiers and metadata

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from cooccurnet.core.abundance import AbundanceMatrix
    >>>
    >>> data = np.array([[10, 0], [3, 7]])
    >>> matrix = AbundanceMatrix.from_counts(
    ...     data,
    ...     organism_ids=["Bacteroides", "Prevotella"],
    ...     sample_ids=["S1", "S2"],
    ...     sample_metadata=pd.DataFrame({"biome": ["Soil", "Marine"]},
    ...                                  index=pd.Index(["S1", "S2"])),
    ... )
    >>> soil = matrix.select_samples(matrix.sample_metadata["biome"] == "Soil")
"""

from __future__ import annotations

from typing import Optional, Sequence
import numpy as np
import pandas as pd

from cooccurnet.core.exceptions import InputError
from cooccurnet.core.quality import QualityFlag

__all__ = ['AbundanceMatrix']


class AbundanceMatrix:
    """
    Immutable container for an abundance table + sample metadata + quality flags.

    Attributes:
        data: Abundance values (organisms x samples), float64
        organism_ids: Row identifiers (taxa)
        sample_ids: Column identifiers (samples)
        sample_metadata: Sample annotations, index equals sample_ids
        quality_flags: Per-value QualityFlag bits, same shape as data

    Shape Invariants:
        - data.shape[0] == len(organism_ids)
        - data.shape[1] == len(sample_ids)
        - quality_flags.shape == data.shape
        - sample_metadata.index equals sample_ids

    Value Invariants:
        - no negative values
        - no NaN / infinite values
    """

    def __init__(
        self,
        data: np.ndarray,
        organism_ids: pd.Index,
        sample_ids: pd.Index,
        sample_metadata: pd.DataFrame,
        quality_flags: np.ndarray,
    ):
        """
        Initialize AbundanceMatrix with validation.

        Raises:
            TypeError: If argument types are incorrect
            ValueError: If shapes are inconsistent or indices don't match
            InputError: If data holds negative or non-finite values
        """
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if not isinstance(organism_ids, pd.Index):
            raise TypeError(f"organism_ids must be pd.Index, got {type(organism_ids)}")
        if not isinstance(sample_ids, pd.Index):
            raise TypeError(f"sample_ids must be pd.Index, got {type(sample_ids)}")
        if not isinstance(sample_metadata, pd.DataFrame):
            raise TypeError(f"sample_metadata must be pd.DataFrame, got {type(sample_metadata)}")
        if not isinstance(quality_flags, np.ndarray):
            raise TypeError(f"quality_flags must be np.ndarray, got {type(quality_flags)}")

        if data.ndim != 2:
            raise ValueError(f"data must be 2D, got shape {data.shape}")

        n_organisms, n_samples = data.shape

        if len(organism_ids) != n_organisms:
            raise ValueError(
                f"organism_ids length ({len(organism_ids)}) must match data rows ({n_organisms})"
            )
        if len(sample_ids) != n_samples:
            raise ValueError(
                f"sample_ids length ({len(sample_ids)}) must match data columns ({n_samples})"
            )
        if quality_flags.shape != data.shape:
            raise ValueError(
                f"quality_flags shape {quality_flags.shape} must match data shape {data.shape}"
            )
        if not sample_metadata.index.equals(sample_ids):
            raise ValueError(
                "sample_metadata.index must match sample_ids exactly. "
                f"Got {len(sample_metadata.index)} metadata rows for {len(sample_ids)} samples."
            )

        data = data.astype(float, copy=False)
        if data.size:
            if not np.isfinite(data).all():
                n_bad = int((~np.isfinite(data)).sum())
                raise InputError(f"Abundance data contains {n_bad} NaN or infinite values")
            if (data < 0).any():
                n_neg = int((data < 0).sum())
                raise InputError(f"Abundance data contains {n_neg} negative values")

        self._data = data
        self._organism_ids = organism_ids
        self._sample_ids = sample_ids
        self._sample_metadata = sample_metadata
        self._quality_flags = quality_flags

    @classmethod
    def from_counts(
        cls,
        data: np.ndarray,
        organism_ids: Sequence,
        sample_ids: Sequence,
        sample_metadata: Optional[pd.DataFrame] = None,
    ) -> AbundanceMatrix:
        """Build a matrix from raw counts with all flags set to ORIGINAL."""
        data = np.asarray(data, dtype=float)
        sample_index = pd.Index(sample_ids)
        if sample_metadata is None:
            sample_metadata = pd.DataFrame(index=sample_index)
        return cls(
            data=data,
            organism_ids=pd.Index(organism_ids),
            sample_ids=sample_index,
            sample_metadata=sample_metadata,
            quality_flags=np.full(data.shape, QualityFlag.ORIGINAL, dtype=int),
        )

    @property
    def data(self) -> np.ndarray:
        """Abundance matrix (organisms x samples)."""
        return self._data

    @property
    def organism_ids(self) -> pd.Index:
        return self._organism_ids

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def sample_metadata(self) -> pd.DataFrame:
        return self._sample_metadata

    @property
    def quality_flags(self) -> np.ndarray:
        return self._quality_flags

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_organisms, n_samples)."""
        return self._data.shape

    @property
    def n_organisms(self) -> int:
        return self._data.shape[0]

    @property
    def n_samples(self) -> int:
        return self._data.shape[1]

    @property
    def sample_totals(self) -> np.ndarray:
        """Total abundance per sample (column sums)."""
        return self._data.sum(axis=0)

    @property
    def is_relative(self) -> bool:
        """True when every value carries the NORMALIZED flag."""
        if self._quality_flags.size == 0:
            return False
        return bool(np.all(self._quality_flags & QualityFlag.NORMALIZED))

    def select_samples(self, mask: np.ndarray | pd.Series) -> AbundanceMatrix:
        """
        Subset matrix by samples (columns).

        Args:
            mask: Boolean array/Series indicating which samples to keep.
                If Series, uses values and ignores index.

        Raises:
            ValueError: If mask length doesn't match n_samples

        Examples:
            >>> soil = matrix.select_samples(matrix.sample_metadata['biome'] == 'Soil')
        """
        if isinstance(mask, pd.Series):
            mask = mask.values
        mask = np.asarray(mask, dtype=bool)

        if len(mask) != self.n_samples:
            raise ValueError(
                f"mask length ({len(mask)}) must match n_samples ({self.n_samples})"
            )

        return AbundanceMatrix(
            data=self._data[:, mask],
            organism_ids=self._organism_ids,
            sample_ids=self._sample_ids[mask],
            sample_metadata=self._sample_metadata.loc[self._sample_ids[mask]],
            quality_flags=self._quality_flags[:, mask],
        )

    def select_organisms(self, mask: np.ndarray | pd.Series) -> AbundanceMatrix:
        """
        Subset matrix by organisms (rows).

        Raises:
            ValueError: If mask length doesn't match n_organisms
        """
        if isinstance(mask, pd.Series):
            mask = mask.values
        mask = np.asarray(mask, dtype=bool)

        if len(mask) != self.n_organisms:
            raise ValueError(
                f"mask length ({len(mask)}) must match n_organisms ({self.n_organisms})"
            )

        return AbundanceMatrix(
            data=self._data[mask, :],
            organism_ids=self._organism_ids[mask],
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
            quality_flags=self._quality_flags[mask, :],
        )

    def with_data(self, data: np.ndarray, quality_flags: np.ndarray) -> AbundanceMatrix:
        """Return a new matrix with replaced values and flags, same identifiers."""
        return AbundanceMatrix(
            data=data,
            organism_ids=self._organism_ids,
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
            quality_flags=quality_flags,
        )

    def categories(self, column: str) -> list[str]:
        """
        Sorted distinct category labels found in a metadata column.

        Missing labels are skipped.

        Raises:
            KeyError: If column is not in sample_metadata
        """
        if column not in self._sample_metadata.columns:
            raise KeyError(
                f"Category column '{column}' not found in sample metadata. "
                f"Available: {list(self._sample_metadata.columns)}"
            )
        values = self._sample_metadata[column].dropna()
        return sorted({str(v) for v in values})

    def category_mask(self, column: str, category: str) -> np.ndarray:
        """Boolean sample mask for one category label."""
        values = self._sample_metadata[column]
        return (values.notna() & (values.astype(str) == category)).values

    def to_frame(self) -> pd.DataFrame:
        """Abundance values as a DataFrame (organisms x samples)."""
        return pd.DataFrame(self._data, index=self._organism_ids, columns=self._sample_ids)

    def copy(self, deep: bool = True) -> AbundanceMatrix:
        """
        Create a copy of this matrix.

        Args:
            deep: If True, copy all arrays. If False, share arrays.
        """
        if deep:
            return AbundanceMatrix(
                data=self._data.copy(),
                organism_ids=self._organism_ids.copy(),
                sample_ids=self._sample_ids.copy(),
                sample_metadata=self._sample_metadata.copy(),
                quality_flags=self._quality_flags.copy(),
            )
        return AbundanceMatrix(
            data=self._data,
            organism_ids=self._organism_ids,
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
            quality_flags=self._quality_flags,
        )

    def __repr__(self) -> str:
        if self.n_organisms == 0 or self.n_samples == 0:
            return f"AbundanceMatrix({self.n_organisms} organisms × {self.n_samples} samples)"
        return (
            f"AbundanceMatrix({self.n_organisms} organisms × {self.n_samples} samples)\n"
            f"  Organisms: {self.organism_ids[0]}...{self.organism_ids[-1]}\n"
            f"  Samples: {self.sample_ids[0]}...{self.sample_ids[-1]}\n"
            f"  Metadata columns: {list(self.sample_metadata.columns)}"
        )

    def __str__(self) -> str:
        return self.__repr__()

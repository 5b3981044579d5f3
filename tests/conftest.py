"""
Pytest configuration and shared fixtures.

This module provides synthetic abundance generators and shared fixtures for
all test suites.
"""

from typing import Dict, Optional

import numpy as np
import pandas as pd
import pytest

from cooccurnet.core.abundance import AbundanceMatrix


def generate_synthetic_abundance_matrix(
    n_organisms: int = 24,
    samples_per_category: Optional[Dict[str, int]] = None,
    module_size: int = 5,
    n_modules: int = 3,
    noise_sd: float = 0.5,
    base_count: float = 100.0,
    category_column: str = "biome",
    seed: int = 42,
) -> AbundanceMatrix:
    """
    Generate a count table with co-occurring organism modules.

    Args:
        n_organisms: Number of organisms (rows)
        samples_per_category: Category label -> number of samples
        module_size: Organisms per co-occurring module
        n_modules: Number of modules (the remaining organisms are independent)
        noise_sd: Per-organism log-scale noise around the module driver
        base_count: Poisson mean at driver == 0
        category_column: Metadata column holding the category labels
        seed: Random seed for reproducibility

    Returns:
        AbundanceMatrix of Poisson counts with sample metadata

    Design:
        - Each module shares one log-normal driver per sample, so module
          members are positively rank-correlated (rho around 0.7-0.8)
        - Organisms outside modules follow independent drivers
        - Drivers are redrawn per category, so categories are independent
    """
    if samples_per_category is None:
        samples_per_category = {"Gut": 30, "Marine": 30, "Soil": 30}

    rng = np.random.RandomState(seed)
    blocks = []
    labels = []
    for category, n_samples in samples_per_category.items():
        log_abundance = rng.normal(0.0, 1.0, size=(n_organisms, n_samples))
        for module_idx in range(n_modules):
            start = module_idx * module_size
            end = min(start + module_size, n_organisms)
            if start >= end:
                break
            driver = rng.normal(0.0, 1.0, size=n_samples)
            noise = rng.normal(0.0, noise_sd, size=(end - start, n_samples))
            log_abundance[start:end] = driver[None, :] + noise
        blocks.append(rng.poisson(base_count * np.exp(log_abundance)))
        labels.extend([category] * n_samples)

    data = np.hstack(blocks).astype(float)
    organism_ids = [f"OTU_{k:03d}" for k in range(n_organisms)]
    sample_ids = [f"S{k:03d}" for k in range(data.shape[1])]
    metadata = pd.DataFrame({category_column: labels}, index=pd.Index(sample_ids))

    return AbundanceMatrix.from_counts(data, organism_ids, sample_ids, metadata)


@pytest.fixture
def synthetic_matrix():
    """Three categories of 30 samples, three five-organism modules."""
    return generate_synthetic_abundance_matrix()


@pytest.fixture
def small_counts():
    """Tiny hand-written count table with two categories."""
    data = np.array([
        [10, 20, 30, 40, 5, 0],
        [1, 2, 3, 4, 9, 0],
        [7, 7, 7, 7, 1, 0],
        [0, 0, 1, 0, 3, 0],
    ], dtype=float)
    metadata = pd.DataFrame(
        {"biome": ["Soil", "Soil", "Soil", "Soil", "Marine", "Marine"]},
        index=pd.Index([f"S{k}" for k in range(6)]),
    )
    return AbundanceMatrix.from_counts(
        data,
        organism_ids=["A", "B", "C", "D"],
        sample_ids=[f"S{k}" for k in range(6)],
        sample_metadata=metadata,
    )


@pytest.fixture
def write_inputs(tmp_path):
    """Write a matrix and its metadata as CSV files; returns (counts, metadata) paths."""
    def _write(matrix: AbundanceMatrix):
        counts_path = tmp_path / "counts.csv"
        metadata_path = tmp_path / "samples.csv"
        matrix.to_frame().to_csv(counts_path)
        matrix.sample_metadata.to_csv(metadata_path)
        return counts_path, metadata_path
    return _write

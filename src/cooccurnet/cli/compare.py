"""
cooccurnet compare command - per-category co-occurrence network comparison.

Loads an abundance table and sample metadata, optionally prefilters rare
organisms, builds one co-occurrence network per environmental category and
writes the topology comparison table with per-category edge lists.

Usage:
    cooccurnet compare --input counts.csv --metadata samples.csv \\
        --category-column biome --output results/biomes --min-coefficient 0.6
"""

import argparse
import logging
from datetime import datetime
from pathlib import Path

from cooccurnet.cli.config import ConfigSchema

logger = logging.getLogger(__name__)

__all__ = ['register_parser', 'run_compare']


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the compare subcommand."""
    defaults = ConfigSchema()
    network_defaults = defaults.network
    filter_defaults = defaults.filter
    parser = subparsers.add_parser(
        "compare",
        help="Build and compare co-occurrence networks across categories",
        description=(
            "Build one co-occurrence network per environmental category "
            "(relative abundance -> Spearman -> positive, strong, significant "
            "associations) and compare their topology."
        )
    )

    # Input/output
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help="Abundance CSV (organisms x samples, first column = organism ID)")
    parser.add_argument("--metadata", "-m", type=Path, default=None,
                        help="Sample metadata CSV (first column = sample ID)")
    parser.add_argument("--category-column", "-c", default=None,
                        help="Metadata column holding the environmental category")
    parser.add_argument("--output", "-o", type=Path, default=Path("results/cooccurrence"),
                        help="Output directory for results")
    parser.add_argument("--config", type=Path, default=None,
                        help="YAML/JSON config file (explicit CLI flags take precedence)")

    # Association / graph parameters
    parser.add_argument("--min-coefficient", type=float, default=network_defaults.min_coefficient,
                        help="Minimum |Spearman rho| for an edge (default: %(default)s)")
    parser.add_argument("--alpha", type=float, default=network_defaults.alpha,
                        help="Maximum p-value for an edge (default: %(default)s)")
    parser.add_argument("--zero-total", choices=["drop", "zero", "raise"], default=network_defaults.zero_total,
                        help="Handling of samples with zero total abundance (default: %(default)s)")
    parser.add_argument("--min-samples", type=int, default=network_defaults.min_samples,
                        help="Minimum samples per category (default: %(default)s)")
    parser.add_argument("--unweighted-modularity", dest="weighted_modularity",
                        action="store_false",
                        help="Ignore edge weights during community detection")
    parser.add_argument("--seed", type=int, default=network_defaults.seed,
                        help="Tie-break seed for community detection")

    # Prefilter
    parser.add_argument("--min-count", type=float, default=filter_defaults.min_count,
                        help="Count above which an organism counts as present (default: %(default)s)")
    parser.add_argument("--min-prevalence", type=float, default=filter_defaults.min_prevalence,
                        help="Fraction of a category's samples an organism must be present "
                             "in, for at least one category (default: 0, keep all)")

    # Selection and execution
    parser.add_argument("--categories", nargs="+", default=None,
                        help="Specific categories to analyze (default: all)")
    parser.add_argument("--workers", type=int, default=defaults.workers,
                        help="Parallel category workers (default: %(default)s)")
    parser.add_argument("--progress", action="store_true",
                        help="Show per-category progress bars")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable DEBUG logging")

    parser.set_defaults(func=run_compare)


def _print_summary(frame) -> None:
    print(f"\n{'='*70}")
    print("  Topology Comparison")
    print(f"{'='*70}")
    for _, row in frame.iterrows():
        if row['status'] == 'failed':
            print(f"  {row['category']}: FAILED ({row['error']})")
            continue
        print(
            f"  {row['category']}: {row['n_nodes']} nodes, {row['n_edges']} edges, "
            f"density={row['density']:.3f}, transitivity={row['transitivity']:.3f}, "
            f"modularity={row['modularity']:.3f} [{row['status']}]"
        )


def run_compare(args: argparse.Namespace) -> int:
    """Execute the compare command."""
    from cooccurnet.core.exceptions import CooccurNetError
    from cooccurnet.io.loaders import load_abundance_matrix
    from cooccurnet.io.writers import write_comparison
    from cooccurnet.network.comparator import CategoryComparator
    from cooccurnet.quality.filtering import AbundanceFilter

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, 'verbose', False) else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.config:
        from cooccurnet.cli.config import load_config, merge_config_with_args, validate_config

        logger.info(f"Loading configuration from: {args.config}")
        try:
            config = load_config(args.config)
            validate_config(config)
            args = merge_config_with_args(config, args, getattr(args, 'cli_args', None))
        except (FileNotFoundError, ValueError) as e:
            print(f"ERROR: Config file error: {e}")
            return 1

    # Validate required arguments (after config merge)
    if not args.input:
        print("ERROR: --input is required (via CLI or config file)")
        return 1
    if not args.metadata:
        print("ERROR: --metadata is required (via CLI or config file)")
        return 1
    if not args.category_column:
        print("ERROR: --category-column is required (via CLI or config file)")
        return 1

    start_time = datetime.now()
    print(f"\n{'='*70}")
    print("  Co-occurrence Network Comparison")
    print(f"{'='*70}\n")

    try:
        logger.info(f"Loading: {args.input}")
        matrix = load_abundance_matrix(Path(args.input), metadata_path=Path(args.metadata))
        logger.info(f"Matrix: {matrix.n_organisms} organisms x {matrix.n_samples} samples")

        if args.min_count > 0 or args.min_prevalence > 0:
            abundance_filter = AbundanceFilter(
                min_sample_total=0.0,
                min_count=args.min_count,
                min_prevalence=args.min_prevalence,
                category_column=args.category_column,
            )
            filter_result = abundance_filter.get_filter_result(matrix)
            matrix = abundance_filter.apply(matrix)
            logger.info(
                f"Prefilter kept {filter_result.n_kept} organisms "
                f"({filter_result.pass_rate:.1%})"
            )

        comparator = CategoryComparator(
            matrix,
            category_column=args.category_column,
            min_coefficient=args.min_coefficient,
            alpha=args.alpha,
            zero_total=args.zero_total,
            min_samples=args.min_samples,
            categories=args.categories,
            weighted_modularity=getattr(args, 'weighted_modularity', True),
            seed=args.seed,
            n_workers=args.workers,
            show_progress=args.progress,
        )
        result = comparator.run()
    except (FileNotFoundError, ValueError, CooccurNetError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"ERROR: {e}")
        return 1

    run_info = {
        'input': str(args.input),
        'metadata': str(args.metadata),
        'organisms': matrix.n_organisms,
        'samples': matrix.n_samples,
        'prefilter': {'min_count': args.min_count, 'min_prevalence': args.min_prevalence},
        'started': start_time.isoformat(timespec='seconds'),
        'finished': datetime.now().isoformat(timespec='seconds'),
    }
    paths = write_comparison(result, Path(args.output), run_info=run_info)

    frame = result.to_frame(sort_by='modularity', ascending=False)
    _print_summary(frame)
    print(f"\n  Results: {paths['topology']}")
    print(f"  Edge lists: {len(paths['edges'])} categories")
    print(f"  Elapsed: {datetime.now() - start_time}\n")

    return 0

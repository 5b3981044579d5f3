"""
cooccurnet CLI - Command-line interface for co-occurrence network comparison.

Commands:
    cooccurnet compare   - Build one network per environmental category and
                           compare their topology
"""

import argparse
import sys
from typing import Optional, List

from cooccurnet import __version__


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for cooccurnet."""
    parser = argparse.ArgumentParser(
        prog="cooccurnet",
        description="Co-occurrence network comparison across environmental categories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  compare       Build and compare per-category co-occurrence networks

Examples:
  cooccurnet compare --input counts.csv --metadata samples.csv --category-column biome
  cooccurnet compare --config run.yaml --min-coefficient 0.8 --workers 4
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from cooccurnet.cli import compare
    compare.register_parser(subparsers)

    raw_args = list(sys.argv[1:] if args is None else args)
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Explicit flags after the subcommand name, for config merging
    parsed_args.cli_args = raw_args[raw_args.index(parsed_args.command) + 1:]

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())

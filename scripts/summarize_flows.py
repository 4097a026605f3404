import argparse
import sys

from loguru import logger

from trafficsim.data.loader import load_flow_records
from trafficsim.simulation import export_flow_reports, format_report
from trafficsim.simulation.calculations import aggregate_flow_stats


def summarize(data_path: str, window: float, output: str | None) -> int:
    """Print the flow report for a CSV of flow records."""
    records = load_flow_records(data_path)
    result = aggregate_flow_stats(records, window)

    print("\n".join(format_report(result)))

    if output:
        export_flow_reports(result, output)

    return 0 if result.flows_observed else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Summarize flow records exported by a flow monitor"
    )
    parser.add_argument("data_path", type=str)
    parser.add_argument(
        "--window", type=float, required=True, help="Observation window in seconds"
    )
    parser.add_argument("--output", type=str, default=None, help="Per-flow CSV output")
    parser.add_argument("--verbose", action="store_true")

    args = parser.parse_args()

    if not args.verbose:
        logger.remove()
        logger.add(sys.stderr, level="WARNING")

    sys.exit(summarize(args.data_path, args.window, args.output))

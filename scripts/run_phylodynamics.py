import argparse
import logging
import sys
from pathlib import Path

from phylodyn.io import read_dated_fasta, write_result
from phylodyn.models import AnalysisOptions, DistanceModel, RootToTipMethod
from phylodyn.pipeline import PhylodynamicsPipeline
from phylodyn.simulation import DivergencePattern, generate_demo_data


def main():
    default_output = Path(__file__).parents[1] / "results"

    parser = argparse.ArgumentParser(description="Run phylodynamic analysis on dated sequences.")
    parser.add_argument(
        "fasta_path",
        nargs="?",
        type=Path,
        help="Aligned FASTA whose ids end with '|<decimal year>' (omit with --demo)",
    )
    parser.add_argument(
        "--demo",
        choices=[p.value for p in DivergencePattern],
        help="Analyze synthetic sequences with the given divergence pattern",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=default_output,
        help=f"Directory for result files (default: {default_output})",
    )
    parser.add_argument("--clock", action="store_true", help="Calibrate a molecular clock")
    parser.add_argument(
        "--skyline", action="store_true", help="Estimate the coalescent skyline (needs --clock)"
    )
    parser.add_argument("--selection", action="store_true", help="Estimate dN/dS")
    parser.add_argument(
        "--distance_model",
        choices=[m.value for m in DistanceModel],
        default=DistanceModel.P_DISTANCE.value,
        help="Pairwise distance model (default: p_distance)",
    )
    parser.add_argument(
        "--root_to_tip",
        choices=[m.value for m in RootToTipMethod],
        default=RootToTipMethod.ANCESTRAL.value,
        help="Root-to-tip measure for the clock (default: ancestral)",
    )
    parser.add_argument(
        "--window_size",
        type=int,
        default=150,
        help="Window width in nucleotides for per-window dN/dS (default: 150)",
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger = logging.getLogger(__name__)

    if args.fasta_path is None and args.demo is None:
        parser.error("either a FASTA path or --demo is required")

    try:
        if args.demo:
            sequences = generate_demo_data(pattern=DivergencePattern(args.demo))
        else:
            sequences = read_dated_fasta(args.fasta_path)

        options = AnalysisOptions(
            run_clock=args.clock,
            run_skyline=args.skyline,
            run_selection=args.selection,
            distance_model=DistanceModel(args.distance_model),
            root_to_tip_method=RootToTipMethod(args.root_to_tip),
            selection_window_size=args.window_size,
        )
        result = PhylodynamicsPipeline(options).run(sequences)
        for feature, outcome in result.outcomes.items():
            suffix = f" ({outcome.reason})" if outcome.reason else ""
            logger.info(f"{feature.value}: {outcome.status.value}{suffix}")
        write_result(result, args.output)
    except Exception as e:
        logger.error(f"Analysis failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

import argparse
import logging
import sys
from typing import List, Optional

from model import BeliefSpreadError
from serialization import (
    load_model_from_files,
    write_full_output,
    write_summary_output,
)
from settings import RunSettings, configure_logging
from summary import summarise, summary_frame

logger = logging.getLogger("beliefspread.run")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulate the spread of beliefs through a population of agents.",
    )
    parser.add_argument("-b", "--behaviours", required=True, help="behaviours JSON file")
    parser.add_argument("-c", "--beliefs", required=True, help="beliefs JSON file")
    parser.add_argument("-a", "--agents", required=True, help="agents JSON file (.zst for zstd)")
    parser.add_argument("-p", "--prs", required=True, help="performance relationships JSON file")
    parser.add_argument("-o", "--output", required=True, help="output file (.zst for zstd)")
    parser.add_argument("-s", "--start", type=int, default=None, help="first simulated time (default 1)")
    parser.add_argument("-e", "--end", type=int, default=None, help="last simulated time, inclusive (default 1)")
    parser.add_argument("--full-output", action="store_true", default=None,
                        help="write every agent's full state instead of summary statistics")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--per-agent-streams", action="store_true", default=None,
                        help="draw each agent's action from its own seeded stream")
    parser.add_argument("--csv", default=None, help="also write summary statistics as CSV")
    parser.add_argument("--log-level", default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = RunSettings.from_env().override(
            start_time=args.start,
            end_time=args.end,
            full_output=args.full_output,
            seed=args.seed,
            per_agent_streams=args.per_agent_streams,
            log_level=args.log_level.upper() if args.log_level else None,
        )
    except ValueError as exc:
        configure_logging()
        logger.error("Invalid settings: %s", exc)
        return 1
    configure_logging(settings.log_level)

    try:
        model = load_model_from_files(
            args.behaviours,
            args.beliefs,
            args.agents,
            args.prs,
            start_time=settings.start_time,
            end_time=settings.end_time,
            seed=settings.seed,
            per_agent_streams=settings.per_agent_streams,
        )
        if settings.is_empty:
            logger.warning("End time %d is before start time %d; nothing to run", settings.end_time, settings.start_time)
        model.run()

        if settings.full_output:
            write_full_output(args.output, model)
            summaries = None
        else:
            summaries = summarise(model.believers, model.beliefs, model.behaviours, settings.start_time, settings.end_time)
            write_summary_output(args.output, summaries)

        if args.csv:
            if summaries is None:
                summaries = summarise(
                    model.believers, model.beliefs, model.behaviours, settings.start_time, settings.end_time
                )
            summary_frame(summaries, model.beliefs, model.behaviours).to_csv(args.csv, index=False)
            logger.info("Wrote summary table to %s", args.csv)
    except (BeliefSpreadError, OSError) as exc:
        logger.error("Simulation failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

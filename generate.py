import argparse
import logging
import sys
from typing import List, Optional

from network import TOPOLOGIES
from scenario import ScenarioParams, generate_scenario, write_scenario
from settings import configure_logging

logger = logging.getLogger("beliefspread.generate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Write a synthetic belief-spread scenario.")
    parser.add_argument("outdir")
    parser.add_argument("--agents", type=int, default=50)
    parser.add_argument("--beliefs", type=int, default=3)
    parser.add_argument("--behaviours", type=int, default=3)
    parser.add_argument("--topology", choices=TOPOLOGIES, default="watts_strogatz")
    parser.add_argument("--topologyp", type=float, default=None)
    parser.add_argument("--topologyk", type=int, default=None)
    parser.add_argument("--topologym", type=int, default=None)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--start-time", type=int, default=1)
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    topologyparams = {}
    if args.topologyp is not None:
        topologyparams["p"] = float(args.topologyp)
    if args.topologyk is not None:
        topologyparams["k"] = int(args.topologyk)
    if args.topologym is not None:
        topologyparams["m"] = int(args.topologym)

    params = ScenarioParams(
        n_agents=args.agents,
        n_beliefs=args.beliefs,
        n_behaviours=args.behaviours,
        topology=args.topology,
        topology_params=topologyparams,
        start_time=args.start_time,
        seed=args.seed,
    )
    try:
        paths = write_scenario(generate_scenario(params), args.outdir)
    except (ValueError, OSError) as exc:
        logger.error("Could not generate scenario: %s", exc)
        return 1
    for kind, path in paths.items():
        logger.info("%s -> %s", kind, path)
    return 0


if __name__ == "__main__":
    sys.exit(main())

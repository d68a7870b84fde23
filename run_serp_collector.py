#!/usr/bin/env python3
"""SERP collector for the intercept system.

Pipeline: keyword → SerpAPI (Google) → normalize → bank/aggregator filter
→ domain dedup → results/

Modes:
  collect  query SerpAPI for each keyword, store per-keyword batches,
           then build the final outputs
  process  rebuild the final outputs from stored batches (no API calls)

Both modes write final_results.json, domains_for_intercept.csv and
stats.json into the results directory.

Usage:
  python run_serp_collector.py                    # default: process
  python run_serp_collector.py collect
  python run_serp_collector.py collect --keywords 5
  python run_serp_collector.py process --results-dir data/results
"""

import argparse
import sys
from pathlib import Path

from serp_collector.config import KEYWORDS_FILE, KEYWORDS_LIMIT, RESULTS_DIR
from serp_collector.pipeline import run_collect, run_process

MODES = ["collect", "process"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect and process SERP results for the intercept system")
    parser.add_argument("mode", nargs="?", default="process", choices=MODES,
                        help=f"Run mode (default: process). Choices: {', '.join(MODES)}")
    parser.add_argument("--keywords", type=int, default=KEYWORDS_LIMIT,
                        help=f"Limit to first N keywords in collect mode (0 = all, default: {KEYWORDS_LIMIT})")
    parser.add_argument("--keywords-file", type=Path, default=KEYWORDS_FILE,
                        help="Keyword list (.json array or one keyword per line)")
    parser.add_argument("--results-dir", type=Path, default=RESULTS_DIR,
                        help="Directory for batches and final outputs")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        # Ensure results directory exists
        args.results_dir.mkdir(parents=True, exist_ok=True)

        if args.mode == "collect":
            print("Starting SerpAPI collection...\n")
            run_collect(args.results_dir, keywords_file=args.keywords_file, limit=args.keywords)
        else:
            print("Processing stored results...\n")
            run_process(args.results_dir)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

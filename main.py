import argparse
import logging
import os
import sys
from typing import List

from recommendations import POLICIES
from session import AnalysisOutcome, AnalysisSession
from skin_report import SkinReportWriter
from skin_score import AnalysisError, load_raster


def parse_args(argv: List[str] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Score skin smoothness, evenness and clarity from face photos"
    )
    parser.add_argument('images', nargs='+', help="Image files to analyze")
    parser.add_argument(
        '--policy',
        choices=sorted(POLICIES),
        default='beyond',
        help="Recommendation rule set"
    )
    parser.add_argument('--output-dir', default='data', help="Directory for saved reports")
    parser.add_argument('--csv', action='store_true', help="Save results as CSV")
    parser.add_argument('--json', action='store_true', help="Save results as JSON")
    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help="Logging verbosity"
    )
    return parser.parse_args(argv)


def print_outcome(image_path: str, outcome: AnalysisOutcome) -> None:
    result = outcome.result
    print(f"\nResults for {image_path}:")
    print(f"Overall Score: {result.overall}/100 ({result.label})")
    print(f"- Smoothness: {result.smoothness}")
    print(f"- Evenness: {result.evenness}")
    print(f"- Clarity: {result.clarity}")

    print("\nRecommendations:")
    for rec in outcome.recommendations:
        print(f"- {rec.text} [{rec.program}]")


def main(argv: List[str] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    writer = SkinReportWriter(output_dir=args.output_dir)
    failures = 0

    with AnalysisSession(policy_name=args.policy) as session:
        for image_path in args.images:
            if not os.path.exists(image_path):
                print(f"Error: Image file not found at {image_path}")
                failures += 1
                continue

            try:
                session.capture(load_raster(image_path))
                outcome = session.analyze().result()
            except AnalysisError as e:
                print(f"\nError analyzing {image_path}: {str(e)}")
                failures += 1
                continue
            finally:
                session.retake()

            print_outcome(image_path, outcome)
            writer.add(outcome, source=image_path)

    if writer.records:
        if args.csv:
            print(f"\nSaved CSV report to {writer.save_to_csv()}")
        if args.json:
            print(f"Saved JSON report to {writer.save_to_json()}")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())

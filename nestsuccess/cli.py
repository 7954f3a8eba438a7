"""
Command-line interface for training the nest success model.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import pandas as pd

from .errors import NestSuccessError
from .pipeline import train_nest_success

logger = logging.getLogger(__name__)


def train_from_csv(
    input_path: Path,
    output_dir: Path,
    seed: Optional[int] = None,
    plot: bool = True,
    progress: bool = True,
) -> dict:
    """
    Complete pipeline: read the nesting summary, train, save outputs.

    Args:
        input_path: CSV file with one row per bird-season
        output_dir: Directory to save outputs
        seed: Random seed
        plot: Save a variable importance plot
        progress: Show a progress bar during tuning

    Returns:
        Dictionary with results and statistics
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    logger.info(f"Reading nesting summary from {input_path}")
    nestingsummary = pd.read_csv(input_path)
    logger.info(f"  {len(nestingsummary)} rows, {nestingsummary.shape[1]} columns")

    result = train_nest_success(nestingsummary, plot=plot, seed=seed, progress=progress)
    paths = result.save(output_dir)

    best = result.tuning.iloc[0]
    results = {
        "input": str(input_path),
        "seed": seed,
        "n_train": result.n_train,
        "n_test": len(result.summary) - result.n_train,
        "mtry": int(best["mtry"]),
        "num_trees": int(best["num_trees"]),
        "oob_error": result.model.oob_error,
        "nest_cutoff": result.nest_cutoff,
        "eval_train": result.eval_train.to_dict(),
        "eval_test": result.eval_test.to_dict(),
        "outputs": {name: str(path) for name, path in paths.items()},
    }

    results_path = output_dir / "results.json"
    with open(results_path, "w") as f:
        json.dump(results, f, indent=2)
    logger.info(f"Saved results summary to {results_path}")

    return results


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Train a nest success model from GPS movement summaries")
    parser.add_argument("input", type=Path, help="CSV nesting summary with a 'success' column")
    parser.add_argument("--output-dir", "-o", type=Path, default=Path("./output"), help="Output directory")
    parser.add_argument("--seed", "-s", type=int, default=None, help="Random seed")
    parser.add_argument("--no-plot", action="store_true", help="Skip the variable importance plot")
    parser.add_argument("--no-progress", action="store_true", help="Hide the tuning progress bar")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        results = train_from_csv(
            input_path=args.input,
            output_dir=args.output_dir,
            seed=args.seed,
            plot=not args.no_plot,
            progress=not args.no_progress,
        )
    except NestSuccessError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Test accuracy: {results['eval_test']['overall']['Accuracy']:.3f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

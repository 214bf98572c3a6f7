"""
Main execution file for the Pitch Movement Expectation Model.

This file orchestrates the complete pipeline from loading two seasons of
pitch-tracking data through feature selection, model training, scoring the
later season, and rendering over/underachiever leaderboards.
"""

import argparse
import os
import sys
import logging
import warnings
from typing import Dict, List, Optional

from pitch_movement.data_processing import MovementPipeline
from pitch_movement.feature_selection import (
    BorutaSelector, FeatureSelector, tentative_rough_fix, selected_features, decisions_to_frame
)
from pitch_movement.models import ModelSpec, train_model, evaluate_model, save_model
from pitch_movement.analysis import score_profiles, split_leaderboards, residual_summary
from pitch_movement.visualization import (
    style_leaderboard, save_leaderboard, plot_feature_importance, plot_cv_results,
    export_results, save_summary_report
)
from pitch_movement.errors import PitchModelError
from config import (
    DATA_DIR, RESULTS_DIR, TRAIN_SEASON, SCORE_SEASON, RESPONSE_COLUMNS, RESPONSE_LABELS,
    SELECTION_CONFIG, TRAINING_CONFIG, LEADERBOARD_SIZE, MOVEMENT_IN_FEET
)

# Configure logging and suppress warnings for cleaner output
warnings.filterwarnings('ignore')
logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def run_pipeline(data_dir: str = DATA_DIR,
                 results_dir: str = RESULTS_DIR,
                 train_season: int = TRAIN_SEASON,
                 score_season: int = SCORE_SEASON,
                 responses: Optional[List[str]] = None,
                 selector: Optional[FeatureSelector] = None,
                 selection_seed: int = SELECTION_CONFIG['random_state'],
                 with_tentative: bool = SELECTION_CONFIG['with_tentative'],
                 rough_fix: bool = SELECTION_CONFIG['rough_fix'],
                 folds: int = TRAINING_CONFIG['folds'],
                 max_features: int = TRAINING_CONFIG['max_features'],
                 n_estimators: int = TRAINING_CONFIG['n_estimators'],
                 training_seed: int = TRAINING_CONFIG['random_state'],
                 n_jobs: Optional[int] = TRAINING_CONFIG['n_jobs'],
                 leaderboard_size: int = LEADERBOARD_SIZE,
                 movement_in_feet: bool = MOVEMENT_IN_FEET,
                 make_plots: bool = True):
    """Run the end-to-end pipeline: aggregation, selection, training, scoring, leaderboards.

    Steps:
        1) Load both seasons and aggregate to per-pitcher median profiles.
        2) For each movement axis, run an independent feature selection on the
           training season.
        3) Fit a random forest on the selected predictors with k-fold CV.
        4) Apply the model to the scoring season and rank actual - expected.
        5) Render styled leaderboards, plots, and exports.

    Returns:
        Tuple: (pipeline, results)
            - pipeline: MovementPipeline holding profiles, decisions and models.
            - results: Dict keyed by response with decisions, CV summary,
              evaluation and leaderboards.
    """
    logger.info("Starting pitch movement expectation pipeline...")
    responses = list(responses or RESPONSE_COLUMNS)
    selector = selector or BorutaSelector()
    pipeline = MovementPipeline(data_dir=data_dir, train_season=train_season,
                                score_season=score_season, responses=responses,
                                movement_in_feet=movement_in_feet)
    os.makedirs(results_dir, exist_ok=True)
    results: Dict[str, Dict] = {}

    try:
        logger.info("Step 1: Loading and aggregating seasons...")
        train_profiles = pipeline.load_profiles(train_season)
        score_profiles_df = pipeline.load_profiles(score_season)
        candidates = pipeline.candidate_columns(train_profiles)
        logger.info(f"Candidate predictors: {candidates}")

        for response in responses:
            label = RESPONSE_LABELS.get(response, response)

            logger.info(f"Step 2: Selecting features for {label}...")
            decisions = selector.select(train_profiles, response, candidates, seed=selection_seed)
            history = getattr(selector, 'history_', None)
            shadow_history = getattr(selector, 'shadow_history_', None)
            if rough_fix and history is not None:
                decisions = tentative_rough_fix(decisions, history, shadow_history)
            pipeline.decisions[response] = decisions
            pipeline.importance_history[response] = (history, shadow_history)

            predictors = selected_features(decisions, with_tentative=with_tentative)
            if not predictors:
                logger.warning(f"No predictors confirmed for {label}; using all {len(candidates)} candidates")
                predictors = list(candidates)
            spec = ModelSpec(response, tuple(predictors))
            logger.info(f"{label} predictors: {', '.join(spec.predictors)}")

            if make_plots and history is not None:
                plot_feature_importance(history, shadow_history, decisions, response,
                                        filename=os.path.join(results_dir, f"importance_{response}.png"))

            logger.info(f"Step 3: Training {label} model...")
            model, fold_metrics = train_model(train_profiles, spec, folds=folds,
                                              max_features=max_features,
                                              n_estimators=n_estimators,
                                              seed=training_seed, n_jobs=n_jobs)
            pipeline.models[response] = model
            pipeline.fold_metrics[response] = fold_metrics
            save_model(model, os.path.join(results_dir, f"model_{response}.joblib"))
            if make_plots:
                plot_cv_results(fold_metrics, response,
                                filename=os.path.join(results_dir, f"cv_{response}.png"))

            logger.info(f"Step 4: Scoring {score_season} {label}...")
            ranked = score_profiles(model, score_profiles_df)
            pipeline.rankings[response] = ranked
            evaluation = evaluate_model(model, score_profiles_df)
            summary = residual_summary(ranked)
            logger.info(f"{score_season} {label}: RMSE {evaluation['rmse']:.3f}, R² {evaluation['r2']:.3f}, "
                        f"mean residual {summary['mean']:.3f}")
            ranked.to_csv(os.path.join(results_dir, f"ranked_{response}.csv"), index=False)

            logger.info(f"Step 5: Building {label} leaderboards...")
            over, under = split_leaderboards(ranked, n=leaderboard_size)
            save_leaderboard(
                style_leaderboard(over, f"{score_season} {label}: Overachievers", positive=True),
                os.path.join(results_dir, f"overachievers_{response}.html")
            )
            save_leaderboard(
                style_leaderboard(under, f"{score_season} {label}: Underachievers", positive=False),
                os.path.join(results_dir, f"underachievers_{response}.html")
            )

            results[response] = {
                'predictors': spec.predictors,
                'decisions': decisions_to_frame(decisions),
                'cv': model.cv.as_dict(),
                'fold_metrics': fold_metrics,
                'evaluation': evaluation,
                'residuals': summary,
                'overachievers': over,
                'underachievers': under
            }

        logger.info("Step 6: Exporting results...")
        export_results(results, os.path.join(results_dir, "movement_results.json"))
        save_summary_report(results, os.path.join(results_dir, "movement_summary.txt"))

        logger.info("Pitch movement pipeline completed successfully!")
        return pipeline, results

    except PitchModelError as e:
        logger.error(f"{e.stage.capitalize()} failed: {e.args[0]}")
        raise
    except FileNotFoundError as e:
        logger.error(f"Loading failed: season file not found: {e}")
        raise


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Expected pitch movement leaderboards")
    parser.add_argument("--data-dir", default=DATA_DIR,
                        help=f"Directory with season CSVs (default: {DATA_DIR})")
    parser.add_argument("--results-dir", default=RESULTS_DIR,
                        help=f"Output directory (default: {RESULTS_DIR})")
    parser.add_argument("--train-season", type=int, default=TRAIN_SEASON)
    parser.add_argument("--score-season", type=int, default=SCORE_SEASON)
    parser.add_argument("--responses", nargs="+", default=RESPONSE_COLUMNS,
                        help="Movement columns to model")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for both selection and training (overrides config)")
    parser.add_argument("--max-iter", type=int, default=SELECTION_CONFIG['max_iter'],
                        help="Feature selection iterations")
    parser.add_argument("--with-tentative", action="store_true",
                        help="Train on Tentative features as well as Confirmed")
    parser.add_argument("--folds", type=int, default=TRAINING_CONFIG['folds'])
    parser.add_argument("--mtry", type=int, default=TRAINING_CONFIG['max_features'],
                        help="Variables sampled at each split")
    parser.add_argument("--trees", type=int, default=TRAINING_CONFIG['n_estimators'])
    parser.add_argument("--jobs", type=int, default=TRAINING_CONFIG['n_jobs'])
    parser.add_argument("--top-n", type=int, default=LEADERBOARD_SIZE,
                        help="Leaderboard size")
    parser.add_argument("--feet", action="store_true", default=MOVEMENT_IN_FEET,
                        help="Movement columns are in feet (raw Statcast pfx)")
    parser.add_argument("--no-plots", action="store_true", help="Skip importance/CV plots")
    return parser.parse_args(argv)


def run_cli(argv: Optional[List[str]] = None):
    """Parse command-line arguments and run the pipeline, returning (pipeline, results)."""
    args = parse_args(argv)
    selection_seed = args.seed if args.seed is not None else SELECTION_CONFIG['random_state']
    training_seed = args.seed if args.seed is not None else TRAINING_CONFIG['random_state']

    selector = BorutaSelector(max_iter=args.max_iter, n_jobs=args.jobs)
    return run_pipeline(data_dir=args.data_dir,
                        results_dir=args.results_dir,
                        train_season=args.train_season,
                        score_season=args.score_season,
                        responses=args.responses,
                        selector=selector,
                        selection_seed=selection_seed,
                        with_tentative=args.with_tentative,
                        folds=args.folds,
                        max_features=args.mtry,
                        n_estimators=args.trees,
                        training_seed=training_seed,
                        n_jobs=args.jobs,
                        leaderboard_size=args.top_n,
                        movement_in_feet=args.feet,
                        make_plots=not args.no_plots)


def main(argv: Optional[List[str]] = None) -> int:
    _, results = run_cli(argv)

    print("\nAnalysis complete! Check the generated files in the results directory:")
    for response in results:
        print(f"- overachievers_{response}.html / underachievers_{response}.html (leaderboards)")
    print("- movement_results.json (detailed results)")
    print("- movement_summary.txt (summary report)")
    return 0


if __name__ == "__main__":
    sys.exit(main())

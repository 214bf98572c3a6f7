"""
Random forest models and training functionality for the movement axes.

Contains the model specification and fitted-model value types, k-fold
cross-validated training, evaluation metrics, and model persistence.
"""

import pandas as pd
import numpy as np
from sklearn.ensemble import RandomForestRegressor
from sklearn.model_selection import KFold
from sklearn.metrics import mean_squared_error
from joblib import Parallel, delayed
import joblib
from dataclasses import dataclass, field
import logging
from typing import Dict, Iterable, Mapping, Optional, Tuple

from config import TRAINING_CONFIG, R2_SENTINEL
from .errors import (
    ConfigurationError, ComputationError,
    require_columns, require_numeric, require_finite
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelSpec:
    """A response column and the ordered predictors used to explain it."""
    response: str
    predictors: Tuple[str, ...]

    @classmethod
    def from_candidates(cls, response: str, candidates: Iterable[str],
                        exclude: Iterable[str] = ()) -> 'ModelSpec':
        """Build a spec from a candidate list, dropping the response and `exclude`."""
        dropped = set(exclude) | {response}
        return cls(response, tuple(col for col in candidates if col not in dropped))

    def with_predictors(self, predictors: Iterable[str]) -> 'ModelSpec':
        return ModelSpec(self.response, tuple(predictors))


@dataclass(frozen=True, eq=False)
class CrossValidationSummary:
    """
    Out-of-sample error estimate from k-fold cross-validation.

    Attributes:
        folds (pd.DataFrame): One row per fold: fold, n_train, n_test, rmse, r2
        rmse_mean, rmse_sd, r2_mean, r2_sd (float): Mean and sample standard
            deviation of the per-fold metrics
        oof_rmse, oof_r2 (float): Metrics over the pooled out-of-fold predictions
    """
    folds: pd.DataFrame
    rmse_mean: float
    rmse_sd: float
    r2_mean: float
    r2_sd: float
    oof_rmse: float
    oof_r2: float

    def as_dict(self) -> Dict[str, float]:
        return {
            'rmse_mean': self.rmse_mean,
            'rmse_sd': self.rmse_sd,
            'r2_mean': self.r2_mean,
            'r2_sd': self.r2_sd,
            'oof_rmse': self.oof_rmse,
            'oof_r2': self.oof_r2
        }


@dataclass(frozen=True, eq=False)
class TrainedModel:
    """
    Final random forest for one movement axis.

    Wraps the estimator refit on all training rows together with the ordered
    predictors it expects and the cross-validation summary from training. Use
    predict/predict_row; the forest itself is not part of the public surface.
    """
    spec: ModelSpec
    cv: CrossValidationSummary
    _forest: RandomForestRegressor = field(repr=False)

    @property
    def response(self) -> str:
        return self.spec.response

    @property
    def predictors(self) -> Tuple[str, ...]:
        return self.spec.predictors

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        """Predict the response for every row of `frame`; all predictors must be present."""
        require_columns(frame, self.predictors, stage="scoring")
        return self._forest.predict(frame[list(self.predictors)].to_numpy(dtype=float))

    def predict_row(self, row: Mapping[str, float]) -> float:
        """Predict the response for a single profile given as a mapping."""
        missing = [p for p in self.predictors if p not in row or pd.isna(row[p])]
        if missing:
            raise ConfigurationError(f"Row is missing predictor(s): {', '.join(missing)}",
                                     stage="scoring")
        values = np.array([[float(row[p]) for p in self.predictors]])
        return float(self._forest.predict(values)[0])


def rmse(actual: np.ndarray, predicted: np.ndarray) -> float:
    return float(np.sqrt(mean_squared_error(actual, predicted)))


def r_squared(actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Squared Pearson correlation between predictions and actuals.

    Returns R2_SENTINEL when the correlation is undefined: fewer than two rows
    or no variance in either vector (e.g. a constant response).
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if not r_squared_defined(actual, predicted):
        return R2_SENTINEL
    return float(np.corrcoef(actual, predicted)[0, 1] ** 2)


def r_squared_defined(actual: np.ndarray, predicted: np.ndarray) -> bool:
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    return len(actual) >= 2 and np.ptp(actual) > 0 and np.ptp(predicted) > 0


def _build_forest(max_features: int, n_estimators: int, seed: int,
                  n_jobs: Optional[int]) -> RandomForestRegressor:
    return RandomForestRegressor(n_estimators=n_estimators,
                                 max_features=max_features,
                                 bootstrap=True,
                                 random_state=seed,
                                 n_jobs=n_jobs)


def _fit_fold(fold: int, train_idx: np.ndarray, test_idx: np.ndarray,
              X: np.ndarray, y: np.ndarray, max_features: int,
              n_estimators: int, seed: int) -> Dict:
    """Train on one fold's complement and score the held-out rows."""
    forest = _build_forest(max_features, n_estimators, seed, n_jobs=1)
    forest.fit(X[train_idx], y[train_idx])
    predicted = forest.predict(X[test_idx])
    if not np.all(np.isfinite(predicted)):
        raise ComputationError(f"Non-finite predictions on fold {fold}", stage="training")
    return {
        'fold': fold,
        'n_train': len(train_idx),
        'n_test': len(test_idx),
        'rmse': rmse(y[test_idx], predicted),
        'r2': r_squared(y[test_idx], predicted),
        'r2_defined': r_squared_defined(y[test_idx], predicted),
        'test_idx': test_idx,
        'predicted': predicted
    }


def train_model(profiles: pd.DataFrame, spec: ModelSpec,
                folds: int = TRAINING_CONFIG['folds'],
                max_features: int = TRAINING_CONFIG['max_features'],
                n_estimators: int = TRAINING_CONFIG['n_estimators'],
                seed: int = TRAINING_CONFIG['random_state'],
                n_jobs: Optional[int] = TRAINING_CONFIG['n_jobs']) -> Tuple[TrainedModel, pd.DataFrame]:
    """
    Cross-validate and fit a random forest for one movement axis.

    The rows are shuffled into `folds` disjoint folds with `seed`. For each fold
    a forest is trained on the other folds and scored on the held-out one; the
    folds are independent and run through joblib, merged by fold index. A final
    forest is then refit on every row with the same hyperparameters; the fold
    forests only produce diagnostics.

    Args:
        profiles (pd.DataFrame): EntityProfiles of the training season
        spec (ModelSpec): Response and predictors
        folds (int): Number of cross-validation folds (k)
        max_features (int): Variables sampled at each split (mtry)
        n_estimators (int): Trees per forest
        seed (int): Seed for fold assignment and forest construction
        n_jobs (Optional[int]): Workers for the fold loop and the final forest

    Returns:
        Tuple containing:
        - TrainedModel fit on all rows
        - Per-fold metrics (pd.DataFrame with fold, n_train, n_test, rmse, r2)

    Raises:
        ConfigurationError: Missing/non-numeric columns, no predictors, bad
            hyperparameters, or fewer rows than folds
        ComputationError: Non-finite inputs or predictions
    """
    if not spec.predictors:
        raise ConfigurationError(f"No predictors given for '{spec.response}'", stage="training")
    if folds < 2:
        raise ConfigurationError(f"At least 2 folds are required, got {folds}", stage="training")
    if max_features < 1:
        raise ConfigurationError(f"max_features must be >= 1, got {max_features}", stage="training")

    columns = [spec.response] + list(spec.predictors)
    require_columns(profiles, columns, stage="training")
    require_numeric(profiles, columns, stage="training")
    require_finite(profiles, columns, stage="training")

    n_rows = len(profiles)
    if n_rows < folds:
        raise ConfigurationError(
            f"Cannot split {n_rows} rows into {folds} folds for '{spec.response}'",
            stage="training"
        )

    if max_features > len(spec.predictors):
        logger.warning(f"max_features={max_features} exceeds {len(spec.predictors)} predictors "
                       f"for '{spec.response}', using {len(spec.predictors)}")
        max_features = len(spec.predictors)

    X = profiles[list(spec.predictors)].to_numpy(dtype=float)
    y = profiles[spec.response].to_numpy(dtype=float)

    if np.ptp(y) == 0:
        logger.warning(f"Response '{spec.response}' is constant; R² will be reported as {R2_SENTINEL}")

    logger.info(f"Training '{spec.response}' on {n_rows} rows, {len(spec.predictors)} predictors, "
                f"{folds} folds, mtry={max_features}, trees={n_estimators}")

    kfold = KFold(n_splits=folds, shuffle=True, random_state=seed)
    fold_results = Parallel(n_jobs=n_jobs)(
        delayed(_fit_fold)(i + 1, train_idx, test_idx, X, y, max_features, n_estimators, seed)
        for i, (train_idx, test_idx) in enumerate(kfold.split(X))
    )
    fold_results = sorted(fold_results, key=lambda r: r['fold'])
    for result in fold_results:
        if not result['r2_defined']:
            logger.warning(f"Fold {result['fold']} of '{spec.response}': R² undefined on "
                           f"{result['n_test']} held-out rows, reported as {R2_SENTINEL}")

    oof = np.empty(n_rows)
    for result in fold_results:
        oof[result['test_idx']] = result['predicted']
    if not r_squared_defined(y, oof):
        logger.warning(f"Pooled out-of-fold R² undefined for '{spec.response}', reported as {R2_SENTINEL}")

    fold_metrics = pd.DataFrame(
        [{k: r[k] for k in ('fold', 'n_train', 'n_test', 'rmse', 'r2')} for r in fold_results]
    )
    summary = CrossValidationSummary(
        folds=fold_metrics,
        rmse_mean=float(fold_metrics['rmse'].mean()),
        rmse_sd=float(fold_metrics['rmse'].std(ddof=1)),
        r2_mean=float(fold_metrics['r2'].mean()),
        r2_sd=float(fold_metrics['r2'].std(ddof=1)),
        oof_rmse=rmse(y, oof),
        oof_r2=r_squared(y, oof)
    )
    logger.info(f"'{spec.response}' CV: RMSE {summary.rmse_mean:.3f} ± {summary.rmse_sd:.3f}, "
                f"R² {summary.r2_mean:.3f} ± {summary.r2_sd:.3f} (pooled R² {summary.oof_r2:.3f})")

    forest = _build_forest(max_features, n_estimators, seed, n_jobs)
    forest.fit(X, y)

    return TrainedModel(spec=spec, cv=summary, _forest=forest), fold_metrics


def evaluate_model(model: TrainedModel, profiles: pd.DataFrame) -> Dict[str, float]:
    """Score a trained model on a labelled profile table (e.g. the later season)."""
    require_columns(profiles, [model.response], stage="scoring")
    predicted = model.predict(profiles)
    actual = profiles[model.response].to_numpy(dtype=float)
    if not r_squared_defined(actual, predicted):
        logger.warning(f"R² undefined when scoring '{model.response}', reported as {R2_SENTINEL}")
    return {
        'rmse': rmse(actual, predicted),
        'r2': r_squared(actual, predicted),
        'n': len(actual)
    }


def save_model(model: TrainedModel, path: str):
    """Persist a trained model with joblib."""
    joblib.dump(model, path)
    logger.info(f"Model for '{model.response}' saved to {path}")


def load_model(path: str) -> TrainedModel:
    """Load a model written by save_model."""
    model = joblib.load(path)
    if not isinstance(model, TrainedModel):
        raise ConfigurationError(f"{path} does not contain a TrainedModel", stage="scoring")
    logger.info(f"Model for '{model.response}' loaded from {path}")
    return model

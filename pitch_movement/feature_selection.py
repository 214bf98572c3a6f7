"""
Feature selection for the movement models.

Wraps BorutaPy's all-relevant shadow-feature procedure: real predictors
compete against permuted copies of themselves over many random forest fits,
and a binomial test on how often each one beats the best shadow decides
whether it is Confirmed, Tentative or Rejected relevant.
"""

import pandas as pd
import numpy as np
from sklearn.ensemble import RandomForestRegressor
from boruta import BorutaPy
from dataclasses import dataclass, asdict
import logging
from typing import List, Optional

from config import SELECTION_CONFIG
from .errors import require_columns, require_numeric, require_finite

logger = logging.getLogger(__name__)

CONFIRMED = 'Confirmed'
TENTATIVE = 'Tentative'
REJECTED = 'Rejected'


@dataclass(frozen=True)
class FeatureDecision:
    """Final classification of one candidate predictor and its importance summary."""
    feature: str
    decision: str
    mean_importance: float
    median_importance: float
    min_importance: float
    max_importance: float
    norm_hits: float


class FeatureSelector:
    """
    Strategy interface for feature selection.

    Implementations classify every candidate column of `table` as a predictor of
    `response`. All randomness must come from `seed`.
    """

    def select(self, table: pd.DataFrame, response: str,
               candidates: List[str], seed: int) -> List[FeatureDecision]:
        raise NotImplementedError


class RecordingBoruta(BorutaPy):
    """BorutaPy that keeps each iteration's real and shadow importances."""

    def fit(self, X, y):
        self.real_importances_ = []
        self.shadow_importances_ = []
        return super().fit(X, y)

    def _add_shadows_get_imps(self, X, y, dec_reg):
        imp_real, imp_sha = super()._add_shadows_get_imps(X, y, dec_reg)
        self.real_importances_.append(imp_real)
        self.shadow_importances_.append(imp_sha)
        return imp_real, imp_sha


class BorutaSelector(FeatureSelector):
    """
    Boruta selection with random forest importances.

    Each call fits a fresh BorutaPy with plain Bonferroni-adjusted tests over
    the candidate count. Rejected predictors are dropped from later forest fits.
    Candidates still undecided after `max_iter` are Tentative only when their
    median importance beats the median best shadow; the rest are Rejected.

    Attributes:
        history_ (pd.DataFrame): Per-iteration importance of each candidate
            (NaN once a candidate is rejected)
        shadow_history_ (pd.DataFrame): Per-iteration shadowMax/shadowMean/shadowMin
    """

    def __init__(self, max_iter: int = SELECTION_CONFIG['max_iter'],
                 p_value: float = SELECTION_CONFIG['p_value'],
                 n_estimators: int = SELECTION_CONFIG['n_estimators'],
                 n_jobs: Optional[int] = SELECTION_CONFIG['n_jobs']):
        self.max_iter = max_iter
        self.p_value = p_value
        self.n_estimators = n_estimators
        self.n_jobs = n_jobs
        self.history_ = None
        self.shadow_history_ = None

    def select(self, table: pd.DataFrame, response: str,
               candidates: List[str], seed: int) -> List[FeatureDecision]:
        """
        Classify each candidate predictor of `response`.

        Args:
            table (pd.DataFrame): EntityProfiles
            response (str): Column to predict
            candidates (List[str]): Predictor columns to classify
            seed (int): Seed for shadow permutations and forest construction

        Returns:
            List[FeatureDecision]: One decision per candidate, in candidate order

        Raises:
            ConfigurationError: Missing or non-numeric response/candidate column
            ComputationError: NaN or infinite values in a participating column
        """
        candidates = list(candidates)
        columns = [response] + candidates
        require_columns(table, columns, stage="selection")
        require_numeric(table, columns, stage="selection")
        require_finite(table, columns, stage="selection")

        self.history_ = pd.DataFrame(columns=candidates, dtype=float)
        self.shadow_history_ = pd.DataFrame(columns=['shadowMax', 'shadowMean', 'shadowMin'], dtype=float)
        if not candidates:
            logger.warning(f"No candidate predictors for '{response}'")
            return []

        logger.info(f"Selecting predictors of '{response}' from {len(candidates)} candidates "
                    f"(max_iter={self.max_iter}, seed={seed})")

        forest = RandomForestRegressor(n_jobs=self.n_jobs)
        boruta = RecordingBoruta(forest,
                                 n_estimators=self.n_estimators,
                                 alpha=self.p_value,
                                 two_step=False,
                                 max_iter=self.max_iter,
                                 random_state=seed,
                                 verbose=0)
        boruta.fit(table[candidates].to_numpy(dtype=float), table[response].to_numpy(dtype=float))

        self.history_ = pd.DataFrame(boruta.real_importances_, columns=candidates)
        shadows = boruta.shadow_importances_
        self.shadow_history_ = pd.DataFrame({
            'shadowMax': [s.max() for s in shadows],
            'shadowMean': [s.mean() for s in shadows],
            'shadowMin': [s.min() for s in shadows]
        })

        decisions = {}
        for feature, strong, weak in zip(candidates, boruta.support_, boruta.support_weak_):
            decisions[feature] = CONFIRMED if strong else TENTATIVE if weak else REJECTED

        runs = len(self.history_)
        counts = pd.Series(list(decisions.values())).value_counts().to_dict()
        logger.info(f"Selection for '{response}' finished after {runs} iterations: {counts}")
        if decisions and all(d == REJECTED for d in decisions.values()):
            logger.warning(f"All candidates rejected for '{response}'")

        return [self._summarise(feature, decisions[feature]) for feature in candidates]

    def _summarise(self, feature: str, decision: str) -> FeatureDecision:
        samples = self.history_[feature]
        hits = int((samples > self.shadow_history_['shadowMax']).sum())
        samples = samples.dropna()
        samples = samples[np.isfinite(samples)]
        if samples.empty:
            return FeatureDecision(feature, decision, np.nan, np.nan, np.nan, np.nan, norm_hits=0.0)
        return FeatureDecision(feature, decision,
                               float(samples.mean()), float(samples.median()),
                               float(samples.min()), float(samples.max()),
                               norm_hits=hits / len(self.history_))


def tentative_rough_fix(decisions: List[FeatureDecision],
                        history: pd.DataFrame,
                        shadow_history: pd.DataFrame) -> List[FeatureDecision]:
    """
    Resolve Tentative features by comparing median importances.

    A Tentative feature becomes Confirmed when its median importance exceeds
    the median of the per-iteration maximum shadow importance, otherwise Rejected.

    Args:
        decisions (List[FeatureDecision]): Output of a selector run
        history (pd.DataFrame): The selector's history_
        shadow_history (pd.DataFrame): The selector's shadow_history_

    Returns:
        List[FeatureDecision]: New decisions with no Tentative entries
    """
    threshold = shadow_history['shadowMax'].median()
    fixed = []
    for d in decisions:
        if d.decision == TENTATIVE:
            median_imp = history[d.feature].median()
            new_decision = CONFIRMED if median_imp > threshold else REJECTED
            logger.info(f"Rough fix: '{d.feature}' Tentative -> {new_decision} "
                        f"(median {median_imp:.4f} vs shadow {threshold:.4f})")
            d = FeatureDecision(d.feature, new_decision, d.mean_importance, d.median_importance,
                                d.min_importance, d.max_importance, d.norm_hits)
        fixed.append(d)
    return fixed


def selected_features(decisions: List[FeatureDecision], with_tentative: bool = False) -> List[str]:
    """Names of Confirmed (and optionally Tentative) features, in candidate order."""
    keep = {CONFIRMED, TENTATIVE} if with_tentative else {CONFIRMED}
    return [d.feature for d in decisions if d.decision in keep]


def decisions_to_frame(decisions: List[FeatureDecision]) -> pd.DataFrame:
    """Tabulate decisions sorted by mean importance, like Boruta's attStats."""
    frame = pd.DataFrame([asdict(d) for d in decisions])
    if frame.empty:
        return frame
    return frame.sort_values('mean_importance', ascending=False, kind='mergesort').reset_index(drop=True)

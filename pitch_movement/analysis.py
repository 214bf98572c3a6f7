"""
Scoring module for expected movement.

Applies trained models to a season of pitcher profiles, computes actual minus
expected residuals, and splits the ranking into over- and underachievers.
"""

import pandas as pd
import numpy as np
import logging
from typing import Dict, List, Optional, Tuple

from config import GROUP_KEYS, LEADERBOARD_SIZE
from .errors import require_columns, require_numeric
from .models import TrainedModel

logger = logging.getLogger(__name__)


def score_profiles(model: TrainedModel, profiles: pd.DataFrame,
                   id_columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Rank pitchers by how far their actual movement exceeds the model's expectation.

    The model is only applied, never refit, so the scores are deterministic for
    a given model. Rows missing a predictor value get no prediction and are left
    out of the ranking (counted in attrs['unscored_rows']); nothing is imputed.

    Args:
        model (TrainedModel): Fitted model for one movement axis
        profiles (pd.DataFrame): EntityProfiles containing the model's predictors
            and its response column
        id_columns (Optional[List[str]]): Identity columns carried into the
            output (default: the group keys present in `profiles`)

    Returns:
        pd.DataFrame: id columns plus actual, expected, difference, sorted by
            difference descending with ties kept in input order

    Raises:
        ConfigurationError: If a predictor or the response column is absent
    """
    required = list(model.predictors) + [model.response]
    require_columns(profiles, required, stage="scoring")
    require_numeric(profiles, required, stage="scoring")

    if id_columns is None:
        id_columns = [col for col in GROUP_KEYS if col in profiles.columns]

    predictor_values = profiles[list(model.predictors)]
    scorable = predictor_values.notna().all(axis=1) & profiles[model.response].notna()
    unscored = int((~scorable).sum())
    if unscored:
        logger.warning(f"Scoring '{model.response}': {unscored} of {len(profiles)} rows "
                       f"missing predictor or response values were not scored")

    rows = profiles[scorable]
    ranked = rows[id_columns].copy()
    ranked['actual'] = rows[model.response].to_numpy(dtype=float)
    ranked['expected'] = model.predict(rows) if len(rows) else np.array([], dtype=float)
    ranked['difference'] = ranked['actual'] - ranked['expected']

    ranked = ranked.sort_values('difference', ascending=False, kind='mergesort').reset_index(drop=True)
    ranked.attrs['unscored_rows'] = unscored
    ranked.attrs['response'] = model.response
    return ranked


def split_leaderboards(ranked: pd.DataFrame,
                       n: int = LEADERBOARD_SIZE) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Take the top and bottom of a residual ranking.

    Args:
        ranked (pd.DataFrame): Output of score_profiles
        n (int): Leaderboard size

    Returns:
        Tuple containing:
        - Overachievers: the n largest differences, largest first
        - Underachievers: the n smallest differences, smallest first
        Equal differences keep their order from `ranked` in both boards.
    """
    if n < 1:
        raise ValueError(f"Leaderboard size must be positive, got {n}")

    over = ranked.head(n).reset_index(drop=True)
    under = (ranked.sort_values('difference', ascending=True, kind='mergesort')
                   .head(n)
                   .reset_index(drop=True))
    over.attrs = dict(ranked.attrs)
    under.attrs = dict(ranked.attrs)
    return over, under


def residual_summary(ranked: pd.DataFrame) -> Dict[str, float]:
    """Mean/spread of the residuals, used as a sanity check on a scoring run."""
    diff = ranked['difference']
    return {
        'n': int(len(diff)),
        'mean': float(diff.mean()) if len(diff) else float('nan'),
        'std': float(diff.std(ddof=1)) if len(diff) > 1 else float('nan'),
        'mean_abs': float(diff.abs().mean()) if len(diff) else float('nan')
    }

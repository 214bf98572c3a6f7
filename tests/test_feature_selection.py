import numpy as np
import pandas as pd
import pytest

from pitch_movement.errors import ComputationError, ConfigurationError
from pitch_movement.feature_selection import (
    CONFIRMED, REJECTED, TENTATIVE,
    BorutaSelector, FeatureDecision, decisions_to_frame, selected_features, tentative_rough_fix
)

CANDIDATES = ['x1', 'x2', 'x3', 'x4']


@pytest.fixture
def selector():
    return BorutaSelector(max_iter=20, n_estimators=50)


def test_confirms_linear_predictor(selector, linear_profiles):
    decisions = selector.select(linear_profiles, 'y', CANDIDATES, seed=1)

    by_feature = {d.feature: d for d in decisions}
    assert [d.feature for d in decisions] == CANDIDATES
    assert by_feature['x1'].decision == CONFIRMED
    assert by_feature['x1'].norm_hits > 0.8
    assert by_feature['x1'].mean_importance == max(d.mean_importance for d in decisions)


def test_same_seed_gives_identical_decisions(linear_profiles):
    first = BorutaSelector(max_iter=10, n_estimators=30).select(linear_profiles, 'y', CANDIDATES, seed=7)
    second = BorutaSelector(max_iter=10, n_estimators=30).select(linear_profiles, 'y', CANDIDATES, seed=7)
    assert first == second


def test_history_is_recorded(selector, linear_profiles):
    selector.select(linear_profiles, 'y', CANDIDATES, seed=1)

    assert list(selector.history_.columns) == CANDIDATES
    assert list(selector.shadow_history_.columns) == ['shadowMax', 'shadowMean', 'shadowMin']
    assert len(selector.history_) == len(selector.shadow_history_)
    assert 1 <= len(selector.history_) <= 20
    assert (selector.shadow_history_['shadowMax'] >= selector.shadow_history_['shadowMin']).all()


def test_single_candidate_still_gets_shadows(linear_profiles):
    selector = BorutaSelector(max_iter=12, n_estimators=30)
    decisions = selector.select(linear_profiles, 'y', ['x1'], seed=2)
    assert len(decisions) == 1
    assert decisions[0].decision == CONFIRMED


def test_rejected_candidates_leave_later_fits(selector, linear_profiles):
    decisions = selector.select(linear_profiles, 'y', CANDIDATES, seed=1)

    for d in decisions:
        if d.decision == REJECTED:
            column = selector.history_[d.feature]
            first_gap = column.isna().idxmax() if column.isna().any() else len(column)
            assert column.iloc[first_gap:].isna().all()


def test_history_has_one_row_per_iteration(linear_profiles):
    selector = BorutaSelector(max_iter=6, n_estimators=20)
    selector.select(linear_profiles, 'y', CANDIDATES, seed=4)
    assert len(selector.history_) <= 6
    assert selector.history_['x1'].notna().all()


def test_no_candidates_returns_no_decisions(selector, linear_profiles, caplog):
    assert selector.select(linear_profiles, 'y', [], seed=1) == []
    assert "All candidates rejected" not in caplog.text
    assert "No candidate predictors" in caplog.text
    assert selector.history_.empty


def test_missing_candidate_is_configuration_error(selector, linear_profiles):
    with pytest.raises(ConfigurationError) as excinfo:
        selector.select(linear_profiles, 'y', ['x1', 'spin'], seed=1)
    assert excinfo.value.stage == "selection"


def test_missing_response_is_configuration_error(selector, linear_profiles):
    with pytest.raises(ConfigurationError):
        selector.select(linear_profiles, 'pfx_z', CANDIDATES, seed=1)


def test_non_numeric_candidate_is_configuration_error(selector, linear_profiles):
    with pytest.raises(ConfigurationError):
        selector.select(linear_profiles, 'y', ['x1', 'p_throws'], seed=1)


def test_non_finite_value_is_computation_error(selector, linear_profiles):
    linear_profiles.loc[3, 'x2'] = np.inf
    with pytest.raises(ComputationError) as excinfo:
        selector.select(linear_profiles, 'y', CANDIDATES, seed=1)
    assert "x2" in str(excinfo.value)


def _decision(feature, decision):
    return FeatureDecision(feature, decision, 0.0, 0.0, 0.0, 0.0, 0.5)


def test_rough_fix_resolves_tentative_features():
    decisions = [_decision('a', TENTATIVE), _decision('b', TENTATIVE), _decision('c', CONFIRMED)]
    history = pd.DataFrame({'a': [0.5, 0.6, 0.7], 'b': [0.1, 0.1, 0.2], 'c': [0.9, 0.9, 0.9]})
    shadow_history = pd.DataFrame({'shadowMax': [0.3, 0.3, 0.4], 'shadowMean': [0.1] * 3, 'shadowMin': [0.0] * 3})

    fixed = {d.feature: d.decision for d in tentative_rough_fix(decisions, history, shadow_history)}

    assert fixed == {'a': CONFIRMED, 'b': REJECTED, 'c': CONFIRMED}


@pytest.mark.parametrize("with_tentative, expected", [
    (False, ['a']),
    (True, ['a', 'b']),
])
def test_selected_features(with_tentative, expected):
    decisions = [_decision('a', CONFIRMED), _decision('b', TENTATIVE), _decision('c', REJECTED)]
    assert selected_features(decisions, with_tentative=with_tentative) == expected


def test_all_rejected_is_not_an_error():
    decisions = [_decision('a', REJECTED), _decision('b', REJECTED)]
    assert selected_features(decisions) == []


def test_decisions_to_frame_sorted_by_importance():
    decisions = [FeatureDecision('a', REJECTED, 0.1, 0.1, 0.0, 0.2, 0.0),
                 FeatureDecision('b', CONFIRMED, 0.8, 0.8, 0.7, 0.9, 1.0)]
    frame = decisions_to_frame(decisions)
    assert list(frame['feature']) == ['b', 'a']
    assert 'norm_hits' in frame.columns

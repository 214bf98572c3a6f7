import numpy as np
import pandas as pd
import pytest

from config import R2_SENTINEL
from pitch_movement.errors import ComputationError, ConfigurationError
from pitch_movement.models import (
    ModelSpec, TrainedModel, evaluate_model, load_model, r_squared, r_squared_defined, rmse, save_model, train_model
)

SPEC = ModelSpec('y', ('x1', 'x2', 'x3', 'x4'))


def _train(profiles, spec=SPEC, **kwargs):
    params = dict(folds=5, max_features=2, n_estimators=50, seed=11)
    params.update(kwargs)
    return train_model(profiles, spec, **params)


def test_fold_table_has_one_row_per_fold(linear_profiles):
    model, fold_metrics = _train(linear_profiles)

    assert len(fold_metrics) == 5
    assert list(fold_metrics['fold']) == [1, 2, 3, 4, 5]
    assert list(fold_metrics.columns) == ['fold', 'n_train', 'n_test', 'rmse', 'r2']
    assert fold_metrics['n_test'].sum() == len(linear_profiles)
    assert (fold_metrics['n_train'] + fold_metrics['n_test'] == len(linear_profiles)).all()


def test_summary_matches_fold_metrics(linear_profiles):
    model, fold_metrics = _train(linear_profiles)

    assert model.cv.rmse_mean == pytest.approx(np.mean(fold_metrics['rmse']))
    assert model.cv.rmse_sd == pytest.approx(np.std(fold_metrics['rmse'], ddof=1))
    assert model.cv.r2_mean == pytest.approx(np.mean(fold_metrics['r2']))
    assert model.cv.folds is fold_metrics


def test_linear_signal_is_learned_out_of_fold(linear_profiles):
    model, _ = _train(linear_profiles, spec=ModelSpec('y', ('x1',)), max_features=1)
    assert model.cv.oof_r2 > 0.5


def test_default_ten_folds(linear_profiles):
    _, fold_metrics = train_model(linear_profiles, SPEC, n_estimators=20)
    assert len(fold_metrics) == 10


def test_same_seed_same_metrics(linear_profiles):
    _, first = _train(linear_profiles)
    _, second = _train(linear_profiles)
    pd.testing.assert_frame_equal(first, second)


def test_exactly_k_rows_trains(linear_profiles, caplog):
    profiles = linear_profiles.head(5)
    model, fold_metrics = _train(profiles)

    assert len(fold_metrics) == 5
    assert (fold_metrics['n_test'] == 1).all()
    assert (fold_metrics['r2'] == R2_SENTINEL).all()
    assert np.isfinite(fold_metrics['rmse']).all()
    assert model.predict(profiles).shape == (5,)
    for fold in range(1, 6):
        assert f"Fold {fold} of 'y': R² undefined on 1 held-out rows" in caplog.text


def test_constant_response_reports_sentinel(linear_profiles):
    linear_profiles['y'] = 4.2
    model, fold_metrics = _train(linear_profiles)

    assert (fold_metrics['r2'] == R2_SENTINEL).all()
    assert model.cv.oof_r2 == R2_SENTINEL
    assert fold_metrics['rmse'].max() == pytest.approx(0.0)


def test_fewer_rows_than_folds(linear_profiles):
    with pytest.raises(ConfigurationError) as excinfo:
        _train(linear_profiles.head(4))
    assert excinfo.value.stage == "training"


@pytest.mark.parametrize("kwargs", [
    {'folds': 1},
    {'max_features': 0},
])
def test_bad_hyperparameters(linear_profiles, kwargs):
    with pytest.raises(ConfigurationError):
        _train(linear_profiles, **kwargs)


def test_no_predictors(linear_profiles):
    with pytest.raises(ConfigurationError):
        _train(linear_profiles, spec=ModelSpec('y', ()))


def test_non_numeric_predictor(linear_profiles):
    with pytest.raises(ConfigurationError):
        _train(linear_profiles, spec=ModelSpec('y', ('x1', 'p_throws')))


def test_missing_value_is_computation_error(linear_profiles):
    linear_profiles.loc[2, 'x3'] = np.nan
    with pytest.raises(ComputationError) as excinfo:
        _train(linear_profiles)
    assert "x3" in str(excinfo.value)


def test_max_features_clamped_to_predictor_count(linear_profiles, caplog):
    model, _ = _train(linear_profiles, spec=ModelSpec('y', ('x1', 'x2')), max_features=5)
    assert "exceeds 2 predictors" in caplog.text
    assert isinstance(model, TrainedModel)


def test_parallel_folds_match_sequential(linear_profiles):
    _, sequential = _train(linear_profiles, n_jobs=None)
    _, parallel = _train(linear_profiles, n_jobs=2)
    pd.testing.assert_frame_equal(sequential, parallel)


def test_predict_row_matches_predict(linear_profiles):
    model, _ = _train(linear_profiles)
    row = linear_profiles.iloc[3]
    assert model.predict_row(row) == pytest.approx(model.predict(linear_profiles)[3])


def test_predict_row_requires_every_predictor(linear_profiles):
    model, _ = _train(linear_profiles)
    with pytest.raises(ConfigurationError):
        model.predict_row({'x1': 1.0, 'x2': 0.0, 'x3': np.nan, 'x4': 0.0})


def test_evaluate_model(linear_profiles):
    model, _ = _train(linear_profiles)
    evaluation = evaluate_model(model, linear_profiles)
    assert evaluation['n'] == 20
    assert evaluation['r2'] > 0.5


def test_save_and_load(linear_profiles, tmp_path):
    model, _ = _train(linear_profiles)
    path = tmp_path / "model_y.joblib"
    save_model(model, str(path))

    loaded = load_model(str(path))

    assert loaded.predictors == model.predictors
    np.testing.assert_allclose(loaded.predict(linear_profiles), model.predict(linear_profiles))


def test_model_spec_from_candidates():
    spec = ModelSpec.from_candidates('pfx_x', ['spin_axis', 'pfx_x', 'pfx_z', 'release_speed'],
                                     exclude=['pfx_z'])
    assert spec == ModelSpec('pfx_x', ('spin_axis', 'release_speed'))
    assert spec.with_predictors(['spin_axis']).predictors == ('spin_axis',)


def test_metric_helpers():
    actual = np.array([1.0, 2.0, 3.0])
    assert rmse(actual, actual + 1) == pytest.approx(1.0)
    assert r_squared(actual, 2 * actual) == pytest.approx(1.0)
    assert r_squared(actual, np.array([2.0, 2.0, 2.0])) == R2_SENTINEL
    assert r_squared(np.array([1.0]), np.array([1.5])) == R2_SENTINEL
    assert not r_squared_defined(np.array([1.0]), np.array([1.5]))
    assert r_squared_defined(actual, 2 * actual)


def test_evaluating_constant_predictions_warns(linear_profiles, caplog):
    model, _ = _train(linear_profiles)
    constant = linear_profiles.copy()
    constant[['x1', 'x2', 'x3', 'x4']] = constant[['x1', 'x2', 'x3', 'x4']].iloc[0].to_numpy()

    evaluation = evaluate_model(model, constant)

    assert evaluation['r2'] == R2_SENTINEL
    assert "R² undefined when scoring 'y'" in caplog.text

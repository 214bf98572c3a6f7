"""
Pitch Movement Expectation Model

Aggregates pitch-tracking data to per-pitcher medians, selects the release
characteristics that explain each movement axis, fits random forest models on
one season and ranks pitchers in the next by how far their actual movement
departs from the model's expectation.
"""

from .errors import PitchModelError, ConfigurationError, ComputationError
from .data_processing import MovementPipeline, aggregate_profiles, load_season, normalize_columns
from .feature_selection import (
    FeatureDecision, FeatureSelector, BorutaSelector, tentative_rough_fix, selected_features
)
from .models import ModelSpec, TrainedModel, train_model, save_model, load_model
from .analysis import score_profiles, split_leaderboards
from .visualization import style_leaderboard, plot_feature_importance, export_results

__version__ = "1.0"

__all__ = [
    'PitchModelError',
    'ConfigurationError',
    'ComputationError',
    'MovementPipeline',
    'aggregate_profiles',
    'load_season',
    'normalize_columns',
    'FeatureDecision',
    'FeatureSelector',
    'BorutaSelector',
    'tentative_rough_fix',
    'selected_features',
    'ModelSpec',
    'TrainedModel',
    'train_model',
    'save_model',
    'load_model',
    'score_profiles',
    'split_leaderboards',
    'style_leaderboard',
    'plot_feature_importance',
    'export_results'
]

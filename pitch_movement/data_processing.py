"""
Data processing module for the pitch movement model.

Contains the pipeline state class and all data loading, column normalisation,
approach-angle derivation, and per-pitcher aggregation functionality.
"""

import pandas as pd
import numpy as np
import os
import re
import logging
from typing import Dict, List, Optional

from config import (
    GROUP_KEYS, AGGREGATION_COLUMNS, RESPONSE_COLUMNS, COLUMN_RENAMES,
    MOVEMENT_IN_FEET, FEET_TO_INCHES, KINEMATIC_COLUMNS, PLATE_FRONT_Y, INITIAL_Y,
    SEASON_FILE_TEMPLATE, NA_VALUES, DATA_DIR, TRAIN_SEASON, SCORE_SEASON
)
from .errors import ConfigurationError, require_columns, require_numeric

logger = logging.getLogger(__name__)


class MovementPipeline:
    """
    State holder for one expected-movement run.

    Keeps the per-season pitcher profiles and, per movement axis, the feature
    decisions, the fitted model and its cross-validation table. main.py drives
    the stages; this class owns loading and aggregation and remembers results
    so they can be exported or inspected afterwards.

    Attributes:
        data_dir (str): Directory holding the season CSV files
        train_season (int): Season the models are fit on
        score_season (int): Season the models are applied to
        responses (List[str]): Movement columns modelled independently
        profiles (Dict[int, pd.DataFrame]): Aggregated EntityProfiles by season
        decisions (Dict[str, list]): FeatureDecisions by response
        importance_history (Dict[str, tuple]): Selector (history, shadow history) by response
        models (Dict[str, TrainedModel]): Final models by response
        fold_metrics (Dict[str, pd.DataFrame]): Per-fold RMSE/R² by response
        rankings (Dict[str, pd.DataFrame]): RankedResiduals by response
    """

    def __init__(self, data_dir: str = DATA_DIR,
                 train_season: int = TRAIN_SEASON,
                 score_season: int = SCORE_SEASON,
                 responses: Optional[List[str]] = None,
                 movement_in_feet: bool = MOVEMENT_IN_FEET):
        self.data_dir = data_dir
        self.train_season = train_season
        self.score_season = score_season
        self.responses = list(responses or RESPONSE_COLUMNS)
        self.movement_in_feet = movement_in_feet
        self.profiles: Dict[int, pd.DataFrame] = {}
        self.decisions: Dict[str, list] = {}
        self.importance_history: Dict[str, tuple] = {}
        self.models: Dict[str, object] = {}
        self.fold_metrics: Dict[str, pd.DataFrame] = {}
        self.rankings: Dict[str, pd.DataFrame] = {}

    def season_path(self, season: int) -> str:
        return os.path.join(self.data_dir, SEASON_FILE_TEMPLATE.format(season=season))

    def load_profiles(self, season: int) -> pd.DataFrame:
        """
        Load one season's CSV, normalise its columns, and aggregate to EntityProfiles.

        Args:
            season (int): Season year, used to build the file name

        Returns:
            pd.DataFrame: One row per pitcher (and hand) with median metrics

        Raises:
            FileNotFoundError: If the season file does not exist
            ConfigurationError: If a required column is missing after normalisation
        """
        records = load_season(self.season_path(season))
        records = normalize_columns(records, movement_in_feet=self.movement_in_feet)
        profiles = aggregate_profiles(records)
        logger.info(f"Season {season}: {len(records)} records -> {len(profiles)} pitcher profiles")
        self.profiles[season] = profiles
        return profiles

    def candidate_columns(self, profiles: pd.DataFrame) -> List[str]:
        """Numeric non-identifier columns that are not a movement axis."""
        excluded = set(GROUP_KEYS) | set(RESPONSE_COLUMNS) | set(self.responses)
        return [col for col in profiles.columns
                if col not in excluded and pd.api.types.is_numeric_dtype(profiles[col])]


def load_season(path: str) -> pd.DataFrame:
    """
    Read a season of pitch-tracking data from CSV.

    Empty cells and the usual NA spellings become NaN; rows are not filtered here.

    Args:
        path (str): CSV file with a header row

    Returns:
        pd.DataFrame: Raw records exactly as exported
    """
    if not os.path.exists(path):
        logger.error(f"Season file not found: {path}")
        raise FileNotFoundError(path)

    df = pd.read_csv(path, na_values=NA_VALUES, keep_default_na=True)
    logger.info(f"Loaded {len(df)} records from {path}")
    return df


def snake_case(name: str) -> str:
    return re.sub(r'[^0-9a-z]+', '_', str(name).strip().lower()).strip('_')


def normalize_columns(df: pd.DataFrame, movement_in_feet: bool = MOVEMENT_IN_FEET) -> pd.DataFrame:
    """
    Map raw export headers onto the canonical column names used by the model.

    Headers are snake-cased, then renamed through COLUMN_RENAMES unless the
    canonical column already exists. Movement is converted from feet to inches
    when requested, and approach angles are derived from the release kinematics
    when the export does not carry them.

    Args:
        df (pd.DataFrame): Raw season records
        movement_in_feet (bool): Whether pfx_x/pfx_z are in feet (raw Statcast)

    Returns:
        pd.DataFrame: Copy of the records with canonical columns
    """
    df = df.copy()
    df.columns = [snake_case(col) for col in df.columns]

    renames = {}
    for raw, canonical in COLUMN_RENAMES.items():
        if raw in df.columns and canonical not in df.columns and canonical not in renames.values():
            renames[raw] = canonical
    if renames:
        logger.info(f"Renaming columns: {renames}")
        df = df.rename(columns=renames)

    if movement_in_feet:
        for col in ('pfx_x', 'pfx_z'):
            if col in df.columns:
                df[col] = df[col] * FEET_TO_INCHES

    missing_angles = [col for col in ('vert_approach_angle', 'horz_approach_angle')
                      if col not in df.columns]
    if missing_angles and all(col in df.columns for col in KINEMATIC_COLUMNS):
        logger.info("Deriving approach angles from release kinematics...")
        angles = derive_approach_angles(df)
        for col in missing_angles:
            df[col] = angles[col]

    # Statcast exports names as "Last, First"; keep them as the identity key
    if 'player_name' in df.columns:
        df['player_name'] = df['player_name'].where(
            df['player_name'].isna(), df['player_name'].astype(str).str.strip()
        )

    return df


def derive_approach_angles(df: pd.DataFrame) -> pd.DataFrame:
    """
    Compute vertical and horizontal approach angles at the front of home plate.

    Uses the constant-acceleration trajectory Statcast fits at y = 50 ft:
    solve for the y-velocity at the plate, the flight time to get there, and the
    x/z velocities at that moment. Angles are in degrees; negative VAA means the
    ball is descending.

    Args:
        df (pd.DataFrame): Records with vx0, vy0, vz0, ax, ay, az

    Returns:
        pd.DataFrame: Columns vert_approach_angle and horz_approach_angle
    """
    vy_f = -np.sqrt(df['vy0'] ** 2 - 2 * df['ay'] * (INITIAL_Y - PLATE_FRONT_Y))
    t = (vy_f - df['vy0']) / df['ay']
    vz_f = df['vz0'] + df['az'] * t
    vx_f = df['vx0'] + df['ax'] * t

    return pd.DataFrame({
        'vert_approach_angle': -np.degrees(np.arctan(vz_f / vy_f)),
        'horz_approach_angle': -np.degrees(np.arctan(vx_f / vy_f))
    }, index=df.index)


def aggregate_profiles(df: pd.DataFrame,
                       numeric_columns: List[str] = AGGREGATION_COLUMNS,
                       group_keys: List[str] = GROUP_KEYS) -> pd.DataFrame:
    """
    Reduce raw records to one EntityProfile per pitcher (and throwing hand).

    Rows missing any participating value are excluded before grouping and the
    count is logged; they never raise. Each numeric column becomes the group
    median. The first group key identifies the pitcher and is required; the
    remaining keys are categorical refinements used only when present.

    Args:
        df (pd.DataFrame): Raw records with canonical column names
        numeric_columns (List[str]): Columns reduced to medians
        group_keys (List[str]): Identity column followed by optional categorical keys

    Returns:
        pd.DataFrame: Group keys followed by medians, one row per distinct key,
            in first-seen order. attrs['dropped_rows'] holds the excluded count.

    Raises:
        ConfigurationError: If the identity key or any numeric column is missing
    """
    if not group_keys:
        raise ConfigurationError("At least one group key is required", stage="aggregation")

    entity_key, *categorical_keys = group_keys
    require_columns(df, [entity_key] + list(numeric_columns), stage="aggregation")
    require_numeric(df, numeric_columns, stage="aggregation")

    keys = [entity_key]
    for key in categorical_keys:
        if key in df.columns:
            keys.append(key)
        else:
            logger.info(f"Optional group key '{key}' not present, grouping without it")

    participating = keys + list(numeric_columns)
    clean = df[participating].dropna()
    dropped = len(df) - len(clean)
    if dropped:
        logger.warning(f"Aggregation: dropped {dropped} of {len(df)} records with missing values")

    profiles = (
        clean.groupby(keys, sort=False)[list(numeric_columns)]
             .median()
             .reset_index()
    )
    profiles.attrs['dropped_rows'] = dropped
    return profiles

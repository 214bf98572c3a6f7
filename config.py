"""
Configuration file for the pitch movement expectation model.

Contains all constants, column mappings, and configuration parameters used throughout the project.
"""

# Identity columns: one EntityProfile per pitcher (and throwing hand)
GROUP_KEYS = ['player_name', 'p_throws']

# Numeric release/movement metrics reduced to per-pitcher medians
AGGREGATION_COLUMNS = [
    'release_spin_rate',     # rpm
    'spin_axis',             # degrees, 0-360
    'release_pos_x',         # ft, catcher's perspective
    'release_pos_z',         # ft above ground
    'release_extension',     # ft toward the plate (release y)
    'release_speed',         # mph
    'vert_approach_angle',   # degrees at the front of the plate
    'horz_approach_angle',
    'pfx_x',                 # horizontal movement, inches
    'pfx_z'                  # induced vertical movement, inches
]

# Movement axes modelled independently, each gets its own selection run
RESPONSE_COLUMNS = ['pfx_x', 'pfx_z']

# Raw export headers (after snake-casing) mapped to the names above
COLUMN_RENAMES = {
    'pitcher_name': 'player_name',
    'name': 'player_name',
    'last_name_first_name': 'player_name',
    'pitch_hand': 'p_throws',
    'throws': 'p_throws',
    'spin_rate': 'release_spin_rate',
    'spin': 'release_spin_rate',
    'spin_direction': 'spin_axis',
    'extension': 'release_extension',
    'release_pos_y': 'release_extension',
    'velocity': 'release_speed',
    'velo': 'release_speed',
    'vaa': 'vert_approach_angle',
    'haa': 'horz_approach_angle',
    'vertical_approach_angle': 'vert_approach_angle',
    'horizontal_approach_angle': 'horz_approach_angle',
    'horizontal_break': 'pfx_x',
    'hb': 'pfx_x',
    'induced_vertical_break': 'pfx_z',
    'ivb': 'pfx_z'
}

# Statcast reports pfx_x/pfx_z in feet; leaderboards are in inches
MOVEMENT_IN_FEET = False
FEET_TO_INCHES = 12.0

# Kinematic columns used to derive approach angles when they are not exported
KINEMATIC_COLUMNS = ['vx0', 'vy0', 'vz0', 'ax', 'ay', 'az']
PLATE_FRONT_Y = 17 / 12   # Front edge of home plate, ft from the tip
INITIAL_Y = 50.0          # Statcast measurement plane for vx0/vy0/vz0

# Shadow-feature selection parameters
SELECTION_CONFIG = {
    'max_iter': 100,
    'p_value': 0.01,
    'n_estimators': 200,
    'with_tentative': False,       # Train on Tentative features as well as Confirmed
    'rough_fix': True,             # Resolve Tentative features after the final iteration
    'random_state': 42,
    'n_jobs': None
}

# Random forest training parameters
TRAINING_CONFIG = {
    'folds': 10,
    'max_features': 3,        # Variables sampled at each split (fixed, not tuned)
    'n_estimators': 500,
    'random_state': 42,
    'n_jobs': None
}

# R² reported when a fold's predictions or actuals have no variance
R2_SENTINEL = 0.0

# Leaderboard parameters
LEADERBOARD_SIZE = 10

# Seasons: models are trained on the first and applied to the second
TRAIN_SEASON = 2022
SCORE_SEASON = 2023
SEASON_FILE_TEMPLATE = "pitch_data_{season}.csv"

# File paths
DATA_DIR = "data"
RESULTS_DIR = "results"

# Display labels for the movement axes
RESPONSE_LABELS = {
    'pfx_x': 'Horizontal Break',
    'pfx_z': 'Induced Vertical Break'
}

# Missing-value markers in the season CSVs
NA_VALUES = ['', 'NA', 'N/A', 'null', 'NULL', 'NaN']

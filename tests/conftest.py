import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest


def make_season_records(seed: int, n_pitchers: int = 30, pitches: int = 4) -> pd.DataFrame:
    """Per-pitch rows where pfx_x follows spin axis and pfx_z follows spin rate."""
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n_pitchers):
        base = {
            'release_spin_rate': rng.normal(2300, 200),
            'spin_axis': rng.uniform(120, 240),
            'release_pos_x': rng.normal(-1.5, 0.5),
            'release_pos_z': rng.normal(5.8, 0.3),
            'release_extension': rng.normal(6.3, 0.3),
            'release_speed': rng.normal(93, 2),
            'vert_approach_angle': rng.normal(-5, 0.5),
            'horz_approach_angle': rng.normal(1, 0.5),
        }
        for _ in range(pitches):
            row = {k: v + rng.normal(0, 0.01 * abs(v) + 0.01) for k, v in base.items()}
            row['player_name'] = f"Last{i}, First{i}"
            row['p_throws'] = 'R' if i % 2 == 0 else 'L'
            row['pfx_x'] = -0.12 * (row['spin_axis'] - 180) + rng.normal(0, 0.3)
            row['pfx_z'] = 0.008 * (row['release_spin_rate'] - 2300) + 15 + rng.normal(0, 0.3)
            rows.append(row)
    return pd.DataFrame(rows)


@pytest.fixture
def linear_profiles():
    """20 pitcher profiles; y is linear in x1 plus small noise, x2-x4 are noise."""
    rng = np.random.default_rng(0)
    n = 20
    x1 = rng.normal(0, 1, n)
    return pd.DataFrame({
        'player_name': [f"Pitcher{i:02d}, Test" for i in range(n)],
        'p_throws': ['R', 'L'] * (n // 2),
        'x1': x1,
        'x2': rng.normal(0, 1, n),
        'x3': rng.normal(0, 1, n),
        'x4': rng.normal(0, 1, n),
        'y': 3 * x1 + rng.normal(0, 0.1, n)
    })


@pytest.fixture
def season_dir(tmp_path):
    """Two season CSVs in the layout MovementPipeline expects."""
    make_season_records(seed=2022).to_csv(tmp_path / "pitch_data_2022.csv", index=False)
    make_season_records(seed=2023).to_csv(tmp_path / "pitch_data_2023.csv", index=False)
    return tmp_path

"""
Error types raised by the pitch movement pipeline.

Every error carries the pipeline stage it was raised in (aggregation, selection,
training, scoring) so the run can abort with a message naming where it failed.
Missing values are not errors: offending rows are dropped and counted in the log.
"""

from typing import Iterable, List

import numpy as np
import pandas as pd


class PitchModelError(Exception):
    """Base class for fatal pipeline errors."""

    def __init__(self, message: str, stage: str = "pipeline"):
        super().__init__(message)
        self.stage = stage

    def __str__(self):
        return f"[{self.stage}] {self.args[0]}"


class ConfigurationError(PitchModelError, ValueError):
    """Missing or misnamed column, bad parameter, or too few rows for the requested folds."""


class ComputationError(PitchModelError, ArithmeticError):
    """Numeric failure tied to a specific column or fold."""


def require_columns(df: pd.DataFrame, columns: Iterable[str], stage: str) -> None:
    """Raise ConfigurationError naming every column of `columns` absent from `df`."""
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Missing required column(s): {', '.join(missing)} "
            f"({len(df.columns)} columns available)",
            stage=stage
        )


def require_numeric(df: pd.DataFrame, columns: Iterable[str], stage: str) -> None:
    """Raise ConfigurationError naming every non-numeric column of `columns`."""
    bad = [col for col in columns if not pd.api.types.is_numeric_dtype(df[col])]
    if bad:
        raise ConfigurationError(
            f"Non-numeric column(s): {', '.join(bad)}",
            stage=stage
        )


def require_finite(df: pd.DataFrame, columns: List[str], stage: str) -> None:
    """Raise ComputationError naming the first column holding NaN or infinite values."""
    for col in columns:
        values = df[col].to_numpy(dtype=float)
        bad = ~np.isfinite(values)
        if bad.any():
            raise ComputationError(
                f"Column '{col}' has {int(bad.sum())} non-finite value(s)",
                stage=stage
            )

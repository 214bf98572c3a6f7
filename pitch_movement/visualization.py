"""
Visualization and export functionality for expected-movement results.

Contains the leaderboard presentation adapter (name/percentage formatting and
table styling), feature-importance and cross-validation plots, and exports of
the run's results to JSON and plain text.
"""

import matplotlib.pyplot as plt
import seaborn as sns
import pandas as pd
import numpy as np
import json
import logging
from typing import Dict, List, Optional

from config import RESPONSE_LABELS
from .feature_selection import FeatureDecision, CONFIRMED, TENTATIVE, REJECTED

logger = logging.getLogger(__name__)

DECISION_COLORS = {
    CONFIRMED: '#2ca25f',
    TENTATIVE: '#fec44f',
    REJECTED: '#de2d26',
    'Shadow': '#3182bd'
}


def format_player_name(name) -> str:
    """Turn "Last, First" into "First Last"; other values are returned unchanged."""
    if not isinstance(name, str) or ',' not in name:
        return name
    last, first = name.split(',', 1)
    return f"{first.strip()} {last.strip()}".strip()


def format_percentage(difference: float, expected: float) -> str:
    """Difference as a signed percentage of the expected magnitude."""
    if expected == 0 or pd.isna(expected) or pd.isna(difference):
        return "--"
    return f"{difference / abs(expected):+.1%}"


def format_leaderboard(board: pd.DataFrame) -> pd.DataFrame:
    """
    Build the display table for one leaderboard.

    Args:
        board (pd.DataFrame): Rows from split_leaderboards

    Returns:
        pd.DataFrame: Rank, Pitcher, Throws (when available), Actual, Expected,
            Difference, and Pct vs Expected
    """
    display = pd.DataFrame({'Rank': np.arange(1, len(board) + 1)})
    display['Pitcher'] = board['player_name'].map(format_player_name).to_numpy()
    if 'p_throws' in board.columns:
        display['Throws'] = board['p_throws'].to_numpy()
    display['Actual'] = board['actual'].to_numpy()
    display['Expected'] = board['expected'].to_numpy()
    display['Difference'] = board['difference'].to_numpy()
    display['Pct vs Expected'] = [format_percentage(d, e)
                                  for d, e in zip(board['difference'], board['expected'])]
    return display


def style_leaderboard(board: pd.DataFrame, title: str, positive: bool = True):
    """
    Style a leaderboard for HTML output.

    Args:
        board (pd.DataFrame): Raw leaderboard rows (see split_leaderboards)
        title (str): Table caption
        positive (bool): Overachiever board (green) or underachiever board (red)

    Returns:
        pandas.io.formats.style.Styler: Styled display table
    """
    display = format_leaderboard(board)
    cmap = 'Greens' if positive else 'Reds_r'
    header_color = DECISION_COLORS[CONFIRMED] if positive else DECISION_COLORS[REJECTED]

    styler = (
        display.style
        .format({'Actual': '{:.1f}', 'Expected': '{:.1f}', 'Difference': '{:+.1f}'})
        .background_gradient(cmap=cmap, subset=['Difference'])
        .set_caption(title)
        .set_table_styles([
            {'selector': 'caption',
             'props': [('font-size', '16px'), ('font-weight', 'bold'), ('text-align', 'left')]},
            {'selector': 'th',
             'props': [('background-color', header_color), ('color', 'white'),
                       ('font-weight', 'bold'), ('padding', '4px 8px')]},
            {'selector': 'td', 'props': [('padding', '4px 8px'), ('font-family', 'Helvetica, Arial')]}
        ])
        .set_properties(subset=['Pitcher'], **{'font-weight': 'bold', 'text-align': 'left'})
        .hide(axis='index')
    )
    return styler


def save_leaderboard(styler, filename: str):
    """Write a styled leaderboard to an HTML file."""
    with open(filename, 'w') as f:
        f.write(styler.to_html())
    logger.info(f"Leaderboard saved as '{filename}'")


def plot_feature_importance(history: pd.DataFrame, shadow_history: pd.DataFrame,
                            decisions: List[FeatureDecision], response: str,
                            filename: Optional[str] = None, show: bool = False):
    """Boxplot of per-iteration importances coloured by decision, with shadow stats in blue.

    Args:
        history (pd.DataFrame): Selector history_ (iterations x candidates)
        shadow_history (pd.DataFrame): Selector shadow_history_
        decisions (List[FeatureDecision]): Decisions for the same run
        response (str): Response column, used for the title
        filename (Optional[str]): Image path to save to
        show (bool): Display the figure interactively

    Returns:
        matplotlib.figure.Figure: The figure
    """
    long = pd.concat([history, shadow_history], axis=1).melt(
        var_name='feature', value_name='importance'
    ).dropna()

    colors = {d.feature: DECISION_COLORS[d.decision] for d in decisions}
    colors.update({col: DECISION_COLORS['Shadow'] for col in shadow_history.columns})
    order = (long.groupby('feature')['importance'].median()
                 .sort_values(kind='mergesort').index.tolist())

    fig, ax = plt.subplots(figsize=(12, 6))
    sns.boxplot(data=long, x='feature', y='importance', hue='feature', order=order,
                hue_order=order, palette=colors, legend=False, ax=ax)
    ax.set_xlabel('')
    ax.set_ylabel('Importance')
    ax.set_title(f"Feature Importance: {RESPONSE_LABELS.get(response, response)}")
    ax.tick_params(axis='x', rotation=45)
    ax.grid(True, axis='y', alpha=0.3)

    plt.tight_layout()
    if filename:
        fig.savefig(filename, dpi=300, bbox_inches='tight')
        logger.info(f"Feature importance plot saved as '{filename}'")
    if show:
        plt.show()
    else:
        plt.close(fig)
    return fig


def plot_cv_results(fold_metrics: pd.DataFrame, response: str,
                    filename: Optional[str] = None, show: bool = False):
    """Per-fold RMSE and R² bars with the mean marked.

    Args:
        fold_metrics (pd.DataFrame): Per-fold table from train_model
        response (str): Response column, used for the title
        filename (Optional[str]): Image path to save to
        show (bool): Display the figure interactively
    """
    fig, axes = plt.subplots(1, 2, figsize=(14, 5))

    for ax, metric, color in zip(axes, ['rmse', 'r2'], ['lightcoral', 'steelblue']):
        ax.bar(fold_metrics['fold'], fold_metrics[metric], color=color, alpha=0.7)
        ax.axhline(fold_metrics[metric].mean(), color='black', linestyle='--',
                   label=f"Mean: {fold_metrics[metric].mean():.3f}")
        ax.set_xlabel('Fold')
        ax.set_ylabel(metric.upper() if metric == 'rmse' else 'R²')
        ax.set_xticks(fold_metrics['fold'])
        ax.legend()
        ax.grid(True, alpha=0.3)

    fig.suptitle(f"Cross-Validation: {RESPONSE_LABELS.get(response, response)}")
    plt.tight_layout()
    if filename:
        fig.savefig(filename, dpi=300, bbox_inches='tight')
        logger.info(f"Cross-validation plot saved as '{filename}'")
    if show:
        plt.show()
    else:
        plt.close(fig)
    return fig


def _json_default(value):
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def export_results(results: Dict, filename: str = "movement_results.json"):
    """Export per-response results to JSON format.

    Args:
        results (Dict): Per-response dict with decisions, cv, evaluation,
            overachievers and underachievers (see main.run_pipeline)
        filename (str): Output filename for JSON export
    """
    export_data = {}
    for response, result in results.items():
        export_data[response] = {
            "label": RESPONSE_LABELS.get(response, response),
            "predictors": list(result['predictors']),
            "feature_decisions": result['decisions'].to_dict('records'),
            "cross_validation": result['cv'],
            "fold_metrics": result['fold_metrics'].to_dict('records'),
            "evaluation": result['evaluation'],
            "residuals": result['residuals'],
            "overachievers": result['overachievers'].to_dict('records'),
            "underachievers": result['underachievers'].to_dict('records')
        }

    with open(filename, 'w') as f:
        json.dump(export_data, f, indent=2, default=_json_default)

    logger.info(f"Results exported to {filename}")


def save_summary_report(results: Dict, filename: str = "movement_summary.txt"):
    """Generate and save a plain-text summary of each movement model.

    Args:
        results (Dict): Same structure as export_results
        filename (str): Output text file name
    """
    with open(filename, 'w') as f:
        f.write("EXPECTED PITCH MOVEMENT - ANALYSIS SUMMARY\n")
        f.write("=" * 50 + "\n")

        for response, result in results.items():
            label = RESPONSE_LABELS.get(response, response)
            cv = result['cv']
            f.write(f"\n{label.upper()} ({response})\n")
            f.write("-" * 30 + "\n")
            f.write(f"Predictors: {', '.join(result['predictors'])}\n")
            f.write(f"CV RMSE: {cv['rmse_mean']:.3f} (sd {cv['rmse_sd']:.3f})\n")
            f.write(f"CV R²: {cv['r2_mean']:.3f} (sd {cv['r2_sd']:.3f}), pooled {cv['oof_r2']:.3f}\n")
            f.write(f"Scored season RMSE: {result['evaluation']['rmse']:.3f}, "
                    f"R²: {result['evaluation']['r2']:.3f}\n")

            f.write("\nFeature decisions:\n")
            for _, row in result['decisions'].iterrows():
                f.write(f"  {row['feature']}: {row['decision']} "
                        f"(mean importance {row['mean_importance']:.4f})\n")

            for title, board in (("Overachievers", result['overachievers']),
                                 ("Underachievers", result['underachievers'])):
                f.write(f"\n{title}:\n")
                for rank, (_, row) in enumerate(board.iterrows(), start=1):
                    f.write(f"  {rank}. {format_player_name(row['player_name'])}: "
                            f"{row['actual']:.1f} vs {row['expected']:.1f} expected "
                            f"({row['difference']:+.1f})\n")

    logger.info(f"Summary report saved as '{filename}'")

from typing import List, Optional
import numpy as np
import pandas as pd
import matplotlib
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path
import logging

from pipeline.models import SignalRun

logger = logging.getLogger(__name__)


class SignalVisualizer:
    """Static plots of crash probability matrices and momentum series"""

    def __init__(self, style: str = 'seaborn-v0_8'):
        """
        Initialize visualizer

        Parameters:
        -----------
        style : str
            Matplotlib style to use. Default is 'seaborn-v0_8'.
            Available styles can be listed with `plt.style.available`
        """
        try:
            plt.style.use(style)
        except OSError:
            plt.style.use('default')
            logger.warning(f"Style '{style}' not found, using default style")

        self.colors = plt.rcParams['axes.prop_cycle'].by_key()['color']

    def plot_crash_matrix(self,
                          matrix: pd.DataFrame,
                          families: Optional[pd.DataFrame] = None,
                          title: Optional[str] = None,
                          save_path: Optional[Path] = None) -> plt.Figure:
        """
        Heatmap of joint crash probabilities

        Parameters:
        -----------
        matrix : DataFrame
            Asset x asset crash probabilities, NaN where undefined
        families : DataFrame, optional
            Best copula family per cell, used as annotation
        title : str, optional
            Plot title
        save_path : Path, optional
            Path to save figure
        """
        if matrix.empty:
            raise ValueError("Empty crash matrix")

        fig, ax = plt.subplots(figsize=(1.2 * len(matrix) + 3, 1.0 * len(matrix) + 2))

        annot = True
        fmt = '.4f'
        if families is not None:
            annot = np.where(
                matrix.notna(),
                matrix.map(lambda p: f"{p:.4f}" if pd.notna(p) else "") + "\n" + families,
                ""
            )
            fmt = ''

        sns.heatmap(
            matrix.astype(float),
            mask=matrix.isna(),
            annot=annot,
            fmt=fmt,
            cmap='Reds',
            cbar_kws={'label': 'Joint crash probability'},
            ax=ax
        )
        ax.set_xlabel('')
        ax.set_ylabel('')
        if title:
            ax.set_title(title)

        plt.tight_layout()

        if save_path:
            fig.savefig(save_path)

        return fig

    def plot_momentum(self,
                      momentum: pd.DataFrame,
                      assets: Optional[List[str]] = None,
                      title: Optional[str] = None,
                      save_path: Optional[Path] = None) -> plt.Figure:
        """
        Plot smoothed momentum per asset over time

        Parameters:
        -----------
        momentum : DataFrame
            Date x asset momentum, NaN where undefined
        assets : list, optional
            Subset of columns to plot
        title : str, optional
            Plot title
        save_path : Path, optional
            Path to save figure
        """
        assets = list(momentum.columns) if assets is None else assets
        if momentum.empty or not assets:
            raise ValueError("Empty momentum data")

        fig, ax = plt.subplots(figsize=(12, 6))

        for i, asset in enumerate(assets):
            ax.plot(momentum.index, momentum[asset], label=asset,
                    color=self.colors[i % len(self.colors)])

        ax.axhline(0.0, color='black', linewidth=0.8)
        ax.set_xlabel('Date')
        ax.set_ylabel('Smoothed log-return level')
        ax.grid(True)
        if title:
            ax.set_title(title)
        ax.legend()

        if save_path:
            fig.savefig(save_path)

        return fig

    def plot_results(self, run: SignalRun, output_path: Path, show_plots: bool = False):
        """Save the crash heatmap and momentum plot of a run"""
        output_path = Path(output_path)
        output_path.mkdir(parents=True, exist_ok=True)

        if run.crash is not None:
            p1, p2 = run.crash.thresholds
            window = f"{run.crash.window_start:%Y-%m-%d} to {run.crash.window_end:%Y-%m-%d}"
            self.plot_crash_matrix(
                run.crash.matrix,
                families=run.crash.families,
                title=f"Joint crash probability at ({p1}, {p2}), {window}",
                save_path=output_path / "crash_matrix.png"
            )

        self.plot_momentum(
            run.momentum,
            title=f"Kalman momentum (lookback {run.config.momentum.lookback})",
            save_path=output_path / "momentum.png"
        )

        if show_plots and matplotlib.get_backend().lower() != 'agg':
            plt.show()

        self.close_all()

    def close_all(self):
        """Close all open figures"""
        plt.close('all')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_all()

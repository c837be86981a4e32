#!/usr/bin/env python
"""
Crash probability and momentum signal pipeline.
Loads cached prices, computes aligned returns, runs the copula and Kalman
engines and writes the outputs.
"""
import sys
from pathlib import Path
import logging
from datetime import datetime
import json
import traceback
from typing import Optional

import pandas as pd

from config import PipelineConfig, CrashConfig, MomentumConfig
from data_manager.data_loader import DataLoader
from exceptions import ConfigurationError
from pipeline.models import SignalRun
from pipeline.window_driver import WindowDriver
from utils.visualization import SignalVisualizer


def setup_logging(output_dir: Path) -> logging.Logger:
    """
    Configure logging with both file and console handlers

    Parameters:
    -----------
    output_dir : Path
        Directory for log file

    Returns:
    --------
    logging.Logger
        Configured logger
    """
    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"signal_calculation_{timestamp}.log"

    logger = logging.getLogger("signal_calculator")
    logger.setLevel(logging.INFO)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(
        logging.Formatter('%(message)s')
    )

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def load_returns(config: PipelineConfig, loader: DataLoader,
                 logger: logging.Logger, prices_file: Optional[Path] = None) -> pd.DataFrame:
    """Aligned returns for the configured symbols and date range"""
    if not config.symbols:
        raise ConfigurationError("At least one asset symbol is required")

    try:
        if prices_file is not None:
            loader.load_prices_csv(prices_file)

        returns = loader.get_returns(config.symbols, config.start, config.end)

        is_valid, issues = loader.validator.validate_returns(returns)
        if not is_valid:
            for issue in issues:
                logger.warning(issue)

        logger.info(f"Loaded {len(returns)} days of returns for {len(config.symbols)} symbols")
        return returns

    except Exception as e:
        logger.error(f"Error loading data: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise


def run_analysis(config: PipelineConfig, returns: pd.DataFrame, output_dir: Optional[Path],
                 logger: logging.Logger, plot: bool = True) -> SignalRun:
    """Run both engines and save results when output_dir is given"""
    logger.info("Starting signal pipeline...")

    try:
        driver = WindowDriver(config)
        run = driver.run(returns)

        if output_dir is not None:
            save_results(run, output_dir)
            if plot:
                logger.info("Generating plots...")
                with SignalVisualizer() as visualizer:
                    visualizer.plot_results(run, output_dir / "plots")

        logger.info("Pipeline completed successfully")
        return run

    except Exception as e:
        logger.error(f"Error in signal pipeline: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise


def save_results(run: SignalRun, output_dir: Path):
    """Write matrix, momentum and failure counts as CSV (empty cells are undefined)"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    if run.crash is not None:
        run.crash.matrix.to_csv(output_dir / "crash_matrix.csv")
        run.crash.families.to_csv(output_dir / "crash_families.csv")
        pairs = run.crash.to_frame()
        pairs['params'] = pairs['params'].map(json.dumps)
        pairs.to_csv(output_dir / "crash_pairs.csv", index=False)

    run.momentum.to_csv(output_dir / "momentum.csv", index_label='date')
    run.failure_summary().to_csv(output_dir / "fit_failures.csv", index=False)


def main():
    """Main entry point with configuration and setup"""
    root_dir = Path(__file__).parent
    data_dir = root_dir / "data_manager" / "data"
    output_dir = root_dir / "results"
    output_dir.mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    logger = setup_logging(output_dir)
    logger.info("Starting signal calculation...")

    config = PipelineConfig(
        symbols=['SPY', 'QQQ', 'IWM', 'EFA', 'EEM', 'TLT', 'GLD', 'USO', 'VNQ'],
        start=datetime(2023, 1, 1).date(),
        end=datetime(2023, 12, 31).date(),
        crash=CrashConfig(lookback=20, thresholds=(0.05, 0.05)),
        momentum=MomentumConfig(lookback=20),
        show_progress=True
    )

    prices_file = data_dir / "prices.csv"
    loader = DataLoader(db_path=str(data_dir / "prices.db"))
    try:
        returns = load_returns(config, loader, logger,
                               prices_file=prices_file if prices_file.exists() else None)
        run_analysis(config, returns, output_dir, logger)
    except Exception as e:
        logger.error(f"Pipeline failed: {str(e)}")
        raise
    finally:
        loader.close()


if __name__ == '__main__':
    main()

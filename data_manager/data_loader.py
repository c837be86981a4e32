"""
Price cache and return computation for the signal pipeline.
"""

import logging
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

import duckdb
import pandas as pd

from data_manager.data_validator import DataValidator
from exceptions import DataAlignmentError

logger = logging.getLogger(__name__)

DateLike = Union[str, date, pd.Timestamp, None]


class DataLoader:
    def __init__(self, db_path: str = ":memory:"):
        """Initialize data loader with database path."""
        self.db_path = str(db_path)
        self.conn = duckdb.connect(self.db_path)
        self.validator = DataValidator()
        self._initialize_database()

    def _initialize_database(self):
        """Create database tables if they don't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS daily_prices (
                date DATE,
                symbol VARCHAR,
                price DOUBLE,
                PRIMARY KEY (date, symbol)
            )
        """)

    def load_prices_csv(self, file_path: Union[str, Path], date_column: str = 'date') -> pd.DataFrame:
        """Load a wide CSV of adjusted closes (one column per symbol) into the cache."""
        logger.info(f"Loading prices from {file_path}")
        df = pd.read_csv(file_path)
        if date_column not in df.columns:
            raise DataAlignmentError(f"Column '{date_column}' not found in {file_path}")
        df[date_column] = pd.to_datetime(df[date_column])
        prices = df.set_index(date_column)
        self.register_prices(prices)
        return prices

    def register_prices(self, prices: pd.DataFrame):
        """Store a wide price table (index = date, columns = symbols)."""
        long = (
            prices.rename_axis('date')
            .reset_index()
            .melt(id_vars='date', var_name='symbol', value_name='price')
            .dropna(subset=['price'])
        )
        long['date'] = pd.to_datetime(long['date']).dt.normalize()
        long['symbol'] = long['symbol'].astype(str)
        long['price'] = long['price'].astype(float)

        self.conn.register('prices_df', long)
        try:
            self.conn.execute("""
                INSERT OR REPLACE INTO daily_prices
                SELECT CAST(date AS DATE), symbol, price FROM prices_df
            """)
        finally:
            self.conn.unregister('prices_df')

        logger.info(
            f"Stored {len(long):,} prices for {long['symbol'].nunique()} symbols"
        )

    def available_symbols(self) -> List[str]:
        rows = self.conn.execute(
            "SELECT DISTINCT symbol FROM daily_prices ORDER BY symbol"
        ).fetchall()
        return [row[0] for row in rows]

    def get_prices(self, symbols: List[str], start: DateLike = None, end: DateLike = None) -> pd.DataFrame:
        """Wide table of cached prices for the symbols within [start, end]."""
        if not symbols:
            raise DataAlignmentError("No symbols requested")

        placeholders = ", ".join("?" for _ in symbols)
        query = f"SELECT date, symbol, price FROM daily_prices WHERE symbol IN ({placeholders})"
        params = [str(s) for s in symbols]
        if start is not None:
            query += " AND date >= ?"
            params.append(pd.Timestamp(start).date())
        if end is not None:
            query += " AND date <= ?"
            params.append(pd.Timestamp(end).date())
        query += " ORDER BY date, symbol"

        long = self.conn.execute(query, params).df()
        if long.empty:
            raise DataAlignmentError(f"No prices found for {symbols} between {start} and {end}")

        missing = sorted(set(params[:len(symbols)]) - set(long['symbol']))
        if missing:
            raise DataAlignmentError(f"No prices found for symbols {missing}")

        wide = long.pivot(index='date', columns='symbol', values='price')
        wide.index = pd.to_datetime(wide.index)
        wide.columns.name = None
        return wide[[str(s) for s in symbols]]

    def get_returns(self, symbols: List[str], start: DateLike = None, end: DateLike = None) -> pd.DataFrame:
        """Aligned simple daily returns; rows with any missing asset are dropped."""
        prices = self.get_prices(symbols, start, end)
        returns = self.validator.prices_to_returns(prices)
        logger.info(
            f"Prepared {len(returns)} aligned returns for {len(symbols)} symbols "
            f"({returns.index[0]:%Y-%m-%d} to {returns.index[-1]:%Y-%m-%d})"
        )
        return returns

    def close(self):
        """Close database connection."""
        self.conn.close()

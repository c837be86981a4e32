"""
Data management package for the signal pipeline.
Handles price caching, return computation and alignment.
"""

from .data_loader import DataLoader
from .data_validator import DataValidator

__all__ = ['DataLoader', 'DataValidator']

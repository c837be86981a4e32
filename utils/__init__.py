"""Utility functions and classes for the signal pipeline"""

from .progress import ProgressMonitor

__all__ = ['ProgressMonitor']

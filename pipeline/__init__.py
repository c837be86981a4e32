"""
Window driver package.
Runs the crash and momentum engines across assets, pairs and time.
"""

from .models import SignalRun
from .window_driver import WindowDriver

__all__ = ['SignalRun', 'WindowDriver']

"""phasekeeper: phase cycle, pass tracking and time gates for play-by-post campaigns"""

__version__ = "0.1.0"

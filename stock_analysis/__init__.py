"""Stock quote API with technical indicators, profit simulation and alerts."""

__version__ = "0.1.0"

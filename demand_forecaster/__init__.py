"""Demand Forecaster - explained short-horizon demand forecasts from sales facts."""

__version__ = "0.1.0"

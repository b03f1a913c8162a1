"""
BabySteps reproducible research workflow.

Synthetic longitudinal data generation, data preparation and model tables.
"""

__version__ = "0.1.0"

"""Core domain logic for the personal health dashboard.

This package contains the vital-sign scoring engine and chart-data preparation,
isolated from storage, rendering and network concerns for easy testing and reasoning.
"""

"""GPAT registry: measures, actors, indicators and the rules that keep them publishable."""

__version__ = "0.1.0"

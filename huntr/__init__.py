"""Normalise, score and rank job listings against user preferences and a CV profile."""

__version__ = "0.1.0"
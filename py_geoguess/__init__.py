"""
py-geoguess: round generation for a street-level location guessing game.
"""

__version__ = "0.1.0"

"""
Trade Barriers Tracker

Public dashboard and admin tooling for interprovincial agreements that
reduce internal trade barriers.
"""

__version__ = "0.1.0"

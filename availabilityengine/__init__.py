"""
availabilityengine - booking availability checks and conflict resolution.
"""

__version__ = "0.1.0"

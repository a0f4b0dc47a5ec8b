"""
member_sync: member relationship and notification synchronization engine.
"""

__version__ = "0.1.0"

"""
Core reconciliation logic for Switchyard.
"""

from switchyard.core.engine import Engine
from switchyard.core.status_cache import StatusCache

__all__ = ["Engine", "StatusCache"]

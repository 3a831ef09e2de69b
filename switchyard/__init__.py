"""
Switchyard: model switching and extension management for Claude Code.
"""

__version__ = "0.1.0"

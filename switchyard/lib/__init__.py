"""
Shared helpers: document patching, logging, typed results, external processes.
"""

"""
Core modules for LLM Usage Guard.

This package contains message analysis, loop detection, history limiting,
compaction and usage reporting.
"""

"""General utilities for SpliceForge.

- Intervals: strand-aware interval algebra
- Sequences: reverse complement and translation
- Logging: rich console logging and timers
"""

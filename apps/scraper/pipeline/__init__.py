"""
Job extraction pipeline.

Turns heterogeneous page sources (intercepted API traffic, hydration state,
JSON-LD, rendered markup) into normalized job records.
"""

__version__ = "1.0.0"

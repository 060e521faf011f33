"""
Extractors for free-text project descriptions.

This module contains:
- normalizers: strategy table turning raw captures into display values
- pattern_extractor: keyword/regex extraction driven by the field catalog
"""

__all__ = [
    "PatternExtractor",
    "extract_fields",
    "NORMALIZERS",
    "get_normalizer",
]

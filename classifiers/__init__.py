"""
Classifiers Package - Transaction to ledger account matching
"""

from .levenshtein_matcher import LevenshteinMatcher, calc_ratio, find_suspense_account, code

__all__ = [
    'LevenshteinMatcher',
    'calc_ratio',
    'find_suspense_account',
    'code'
]

"""
Processors Package - Coding workflow over matched transactions
"""

from .coder import Coder, code_statements

__all__ = ['Coder', 'code_statements']

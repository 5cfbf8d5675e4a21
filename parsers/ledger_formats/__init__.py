"""
General ledger report formats
"""

import logging
from typing import Dict, List, Optional

from .accountingcs import AccountingCSFormat

logger = logging.getLogger(__name__)

LEDGER_FORMATS = [
    AccountingCSFormat(),
]


def detect_ledger_format(lines: List[List[Dict]]):
    """First ledger format that identifies the document, or None"""
    for ledger_format in LEDGER_FORMATS:
        if ledger_format.identify(lines):
            logger.info("Detected ledger format: %s", ledger_format.name)
            return ledger_format
    return None


def get_ledger_format(key: str) -> Optional[AccountingCSFormat]:
    for ledger_format in LEDGER_FORMATS:
        if ledger_format.key == key:
            return ledger_format
    return None


__all__ = ['AccountingCSFormat', 'LEDGER_FORMATS', 'detect_ledger_format', 'get_ledger_format']

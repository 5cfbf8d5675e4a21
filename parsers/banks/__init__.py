"""
Bank statement layouts, tried in priority order

New issuers are added with register_layout(); the first layout whose
identify() matches decides how the whole statement is read.
"""

import logging
from typing import Dict, List, Optional

from .base import BankLayout
from .bofa import BankOfAmericaLayout
from .chase import ChaseLayout
from .regions import RegionsLayout
from .surety import SuretyLayout
from .wellsfargo import WellsFargoLayout

logger = logging.getLogger(__name__)

LAYOUTS: List[BankLayout] = [
    BankOfAmericaLayout(),
    ChaseLayout(),
    RegionsLayout(),
    SuretyLayout(),
    WellsFargoLayout(),
]


def register_layout(layout: BankLayout, priority: int = None):
    """
    Add an issuer layout.

    Args:
        layout: Layout instance
        priority: Position in the dispatch list (appended when None)
    """
    if any(existing.key == layout.key for existing in LAYOUTS):
        raise ValueError(f"Layout already registered: {layout.key}")
    if priority is None:
        LAYOUTS.append(layout)
    else:
        LAYOUTS.insert(priority, layout)


def detect_layout(lines: List[List[Dict]]) -> Optional[BankLayout]:
    """First layout that identifies the document, or None"""
    for layout in LAYOUTS:
        if layout.identify(lines):
            logger.info("Detected bank: %s", layout.name)
            return layout
    return None


def get_layout(key: str) -> Optional[BankLayout]:
    for layout in LAYOUTS:
        if layout.key == key:
            return layout
    return None


__all__ = [
    'BankLayout',
    'BankOfAmericaLayout',
    'ChaseLayout',
    'RegionsLayout',
    'SuretyLayout',
    'WellsFargoLayout',
    'LAYOUTS',
    'register_layout',
    'detect_layout',
    'get_layout',
]

"""
General Ledger Model

A ledger comes either from OCR lines (a recognised report format such as
AccountingCS) or from a spreadsheet export. Either way it ends up as a
list of accounts, each with its entries and printed control totals.
"""

import os
import logging
from typing import Dict, List, Optional

from config import UNKNOWN, RECONCILIATION_TOLERANCE, LINE_Y_THRESHOLD
from .ocr_lines import group_fragments_into_lines
from .ledger_formats import detect_ledger_format
from .excel_parser import ExcelParser

logger = logging.getLogger(__name__)

SPREADSHEET_FORMAT = 'spreadsheet'


class GeneralLedger:
    """
    One parsed general ledger.

    Usage:
        ledger = GeneralLedger.from_fragments(pages)
        ledger = GeneralLedger.from_spreadsheet("gl.xlsx")
    """

    def __init__(self, lines: List[List[Dict]] = None, ledger_format=None):
        self.format = None
        self.company = None
        self.period = None
        self.accounts = []
        self.distribution_count = None
        self.file = None

        if lines is None:
            return

        ledger_format = ledger_format or detect_ledger_format(lines)
        if ledger_format is None:
            logger.warning("Ledger format not recognised")
            return

        self.format = ledger_format.key
        self.company = ledger_format.extract_company(lines)
        self.period = ledger_format.extract_period(lines)
        result = ledger_format.extract_accounts(lines)
        self.accounts = result['accounts']
        self.distribution_count = result['distribution_count']
        self.reconcile()

    @classmethod
    def from_fragments(cls, pages: List[List[Dict]], threshold: float = LINE_Y_THRESHOLD,
                       repair_window: int = 0) -> 'GeneralLedger':
        lines = group_fragments_into_lines(pages, threshold=threshold, repair_window=repair_window)
        return cls(lines)

    @classmethod
    def from_spreadsheet(cls, file_path: str) -> 'GeneralLedger':
        ledger = cls()
        ledger.accounts = ExcelParser().parse(file_path)
        if ledger.accounts:
            ledger.format = SPREADSHEET_FORMAT
            ledger.company = {'name': UNKNOWN}
            ledger.period = {'start': UNKNOWN, 'end': UNKNOWN}
        ledger.attach_file({'name': os.path.basename(file_path)})
        return ledger

    @classmethod
    def from_accounts(cls, accounts: List[Dict], company: str = UNKNOWN) -> 'GeneralLedger':
        """Ledger from already structured accounts (tests, saved results)"""
        ledger = cls()
        ledger.format = 'accounts'
        ledger.company = {'name': company}
        ledger.period = {'start': UNKNOWN, 'end': UNKNOWN}
        ledger.accounts = accounts
        return ledger

    def is_identified(self) -> bool:
        """A ledger is usable once its format and company were resolved"""
        return self.format is not None and self.company is not None

    # ============ LOOKUPS ============

    def get_account(self, number: str) -> Optional[Dict]:
        for account in self.accounts:
            if account['number'] == number:
                return account
        return None

    def get_entry_count(self) -> int:
        return sum(len(account['entries']) for account in self.accounts)

    # ============ RECONCILIATION ============

    def reconcile(self) -> Dict:
        """
        Check entry counts and per-account totals against printed values.

        The distribution count is known to under-count when a line carries
        more than one entry; mismatches are reported, never corrected.

        Returns:
            {'expected_entries', 'actual_entries', 'matches', 'accounts': [mismatches]}
        """
        actual = self.get_entry_count()
        expected = self.distribution_count
        report = {
            'expected_entries': expected,
            'actual_entries': actual,
            'matches': None if expected is None else expected == actual,
            'accounts': [],
        }

        for account in self.accounts:
            amounts = [e['amount'] for e in account['entries'] if e.get('amount') is not None]
            if account.get('amount_total') is None or not amounts:
                continue
            entries_sum = round(sum(amounts), 2)
            if abs(entries_sum - account['amount_total']) > RECONCILIATION_TOLERANCE:
                report['accounts'].append({
                    'number': account['number'],
                    'name': account['name'],
                    'entries_sum': entries_sum,
                    'amount_total': account['amount_total'],
                    'difference': round(entries_sum - account['amount_total'], 2),
                })

        if report['matches'] is False:
            logger.warning("Distribution count mismatch: expected %d entries, parsed %d", expected, actual)
        for mismatch in report['accounts']:
            logger.warning("Account %s (%s): entries sum %.2f, printed total %.2f",
                           mismatch['number'], mismatch['name'], mismatch['entries_sum'],
                           mismatch['amount_total'])
        return report

    # ============ MISC ============

    def attach_file(self, file_ref: Dict):
        self.file = file_ref

    def to_dict(self) -> Dict:
        return {
            'format': self.format,
            'company': self.company,
            'period': self.period,
            'distribution_count': self.distribution_count,
            'accounts': self.accounts,
            'file': self.file,
        }

    def __repr__(self):
        return f"<GeneralLedger {self.format} {len(self.accounts)} accounts>"

"""
Bank Statement Model

Built once from page-grouped OCR lines. The first issuer layout that
identifies the document extracts every field; a statement with no matching
issuer keeps all fields unset and reports is_identified() == False.
"""

import logging
from typing import Dict, List, Optional

from config import NOT_FOUND, RECONCILIATION_TOLERANCE, LINE_Y_THRESHOLD
from .ocr_lines import group_fragments_into_lines
from .banks import BankLayout, detect_layout

logger = logging.getLogger(__name__)


class BankStatement:
    """
    One parsed bank statement.

    Usage:
        statement = BankStatement.from_fragments(pages)
        if statement.is_identified():
            report = statement.reconcile()
    """

    def __init__(self, lines: List[List[Dict]], layout: BankLayout = None):
        """
        Args:
            lines: Reconstructed lines per page
            layout: Issuer layout to use (detected from the lines when None)
        """
        self.lines = lines
        self.layout = layout or detect_layout(lines)

        self.bank = None
        self.company = None
        self.account = None
        self.period = None
        self.summary = None
        self.deposits = None
        self.withdrawals = None
        self.file = None

        if self.layout is None:
            logger.warning("Bank not recognised, statement left unparsed")
            return
        self._parse()

    @classmethod
    def from_fragments(cls, pages: List[List[Dict]], threshold: float = LINE_Y_THRESHOLD,
                       repair_window: int = 0, layout: BankLayout = None) -> 'BankStatement':
        lines = group_fragments_into_lines(pages, threshold=threshold, repair_window=repair_window)
        return cls(lines, layout=layout)

    def _parse(self):
        layout = self.layout
        self.bank = layout.name
        self.company = layout.extract_company(self.lines)
        self.account = layout.extract_account(self.lines)
        self.period = layout.extract_period(self.lines)
        self.summary = layout.extract_summary(self.lines)
        self.deposits = layout.extract_deposits(self.lines, self.period)
        self.withdrawals = layout.extract_withdrawals(self.lines, self.period)

        logger.info("%s: %d deposits, %d withdrawals (%s - %s)", self.bank, len(self.deposits),
                    len(self.withdrawals), self.period['start'], self.period['end'])
        self.reconcile()

    def is_identified(self) -> bool:
        return self.bank is not None

    # ============ TOTALS ============

    def get_total_deposits(self) -> float:
        return round(sum(t['amount'] for t in self.deposits or []), 2)

    def get_total_withdrawals(self) -> float:
        return round(sum(t['amount'] for t in self.withdrawals or []), 2)

    def get_expected_withdrawals(self) -> float:
        """Printed withdrawals plus checks and fees, or NOT_FOUND when none was printed"""
        totals = (self.summary or {}).get('totals', {})
        found = [totals.get(k, NOT_FOUND) for k in ('withdrawals', 'checks', 'fees')]
        found = [v for v in found if v != NOT_FOUND]
        return round(sum(found), 2) if found else NOT_FOUND

    def do_deposits_match_total(self) -> Optional[bool]:
        printed = (self.summary or {}).get('totals', {}).get('deposits', NOT_FOUND)
        return _matches(self.get_total_deposits(), printed)

    def do_withdrawals_match_total(self) -> Optional[bool]:
        return _matches(self.get_total_withdrawals(), self.get_expected_withdrawals())

    def reconcile(self) -> Dict:
        """
        Compare computed transaction totals with the printed summary.

        Mismatches are logged, never raised.

        Returns:
            {'deposits': {...}, 'withdrawals': {...}, 'balance': {...}} where each
            list report holds computed, printed, matches (None when the printed
            total is missing) and difference
        """
        if not self.is_identified():
            return {}

        summary = self.summary
        deposits = _list_report(self.get_total_deposits(), summary['totals']['deposits'])
        withdrawals = _list_report(self.get_total_withdrawals(), self.get_expected_withdrawals())

        begin, end = summary['balance']['begin'], summary['balance']['end']
        balance = {'begin': begin, 'end': end, 'computed_end': None, 'matches': None}
        if begin != NOT_FOUND:
            balance['computed_end'] = round(begin + deposits['computed'] + withdrawals['computed'], 2)
            balance['matches'] = _matches(balance['computed_end'], end)

        for name, report in (('deposits', deposits), ('withdrawals', withdrawals)):
            if report['matches'] is False:
                logger.warning("%s %s do not reconcile: computed %.2f, printed %.2f (difference %.2f)",
                               self.bank, name, report['computed'], report['printed'], report['difference'])
        if balance['matches'] is False:
            logger.warning("%s ending balance does not reconcile: computed %.2f, printed %.2f",
                           self.bank, balance['computed_end'], end)

        return {'deposits': deposits, 'withdrawals': withdrawals, 'balance': balance}

    # ============ MISC ============

    def attach_file(self, file_ref: Dict):
        """Link the stored upload this statement came from (UI only)"""
        self.file = file_ref

    def to_dict(self) -> Dict:
        return {
            'bank': self.bank,
            'company': self.company,
            'account': self.account,
            'period': self.period,
            'summary': self.summary,
            'deposits': self.deposits,
            'withdrawals': self.withdrawals,
            'file': self.file,
        }

    def __repr__(self):
        return f"<BankStatement {self.bank or 'unidentified'} {self.account and self.account.get('number')}>"


def _matches(computed: float, printed: float) -> Optional[bool]:
    if printed == NOT_FOUND:
        return None
    return abs(computed - printed) <= RECONCILIATION_TOLERANCE


def _list_report(computed: float, printed: float) -> Dict:
    matches = _matches(computed, printed)
    return {
        'computed': computed,
        'printed': printed,
        'matches': matches,
        'difference': round(computed - printed, 2) if matches is not None else None,
    }

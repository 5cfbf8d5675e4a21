"""
Wells Fargo business checking statements

Deposits and withdrawals share one "Transaction history" table; each row
carries its amount in either the deposits or the withdrawals column,
followed by an optional ending daily balance. Rows are split by the
normalized x position of their amount fragments.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from config import UNKNOWN, DATE_FORMAT
from .base import (BankLayout, AMOUNT_END_REGEX, IGNORED_LINE_PATTERNS, parse_amount,
                   parse_long_date)
from ..ocr_lines import first_page, line_text, sort_fragments_by_x, strip_text

PERIOD_START_REGEX = re.compile(r'Beginning balance on (\d{1,2}/\d{1,2})')
PERIOD_END_REGEX = re.compile(r'([A-Z][a-z]+ \d{1,2}, \d{4})')
AMOUNT_ONLY_REGEX = re.compile(r'^\(?-?\$?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}\)?-?$')

# Used only when OCR merges a whole row into one fragment
DEPOSIT_KEYWORDS = ['DEPOSIT', 'CREDIT', 'INTEREST', 'TRANSFER FROM', 'REFUND']


class WellsFargoLayout(BankLayout):
    key = 'wellsfargo'
    name = 'Wells Fargo - Business'
    anchor = '1-800-CALL-WELLS'

    company_region = ((0.03, 0.35), (0.2, 0.265))
    account_region = ((0.6, 0.83), (0.59, 0.62))
    account_label = re.compile(r'Account number:')

    summary_heading = 'Activity summary'
    summary_labels = [
        ('begin', 'Beginning balance on'),
        ('deposits', 'Deposits/Additions'),
        ('withdrawals', 'Withdrawals/Subtractions'),
        ('end', 'Ending balance on'),
    ]

    history_heading = 'Transaction history'
    history_end = ('Ending balance on', 'Totals')

    deposit_column = (0.6, 0.73)
    withdrawal_column = (0.73, 0.85)

    def extract_period(self, lines: List[List[Dict]]) -> Dict:
        """
        End date is the first long-form date on page 1; the start comes from
        "Beginning balance on M/D" with the end date's year.
        """
        period = {'start': UNKNOWN, 'end': UNKNOWN}
        for line in first_page(lines):
            text = line_text(line)

            if period['end'] == UNKNOWN:
                match = PERIOD_END_REGEX.search(text)
                if match and parse_long_date(match.group(1)):
                    period['end'] = parse_long_date(match.group(1))
                    continue

            match = PERIOD_START_REGEX.search(text)
            if match and period['end'] != UNKNOWN:
                year = period['end'][-4:]
                try:
                    start = datetime.strptime(f"{match.group(1)}/{year}", "%m/%d/%Y")
                except ValueError:
                    continue
                period['start'] = start.strftime(DATE_FORMAT)
                return period

        return period

    def extract_deposits(self, lines: List[List[Dict]], period: Dict = None) -> List[Dict]:
        return self.extract_history(lines, period)[0]

    def extract_withdrawals(self, lines: List[List[Dict]], period: Dict = None) -> List[Dict]:
        return self.extract_history(lines, period)[1]

    def extract_history(self, lines: List[List[Dict]], period: Dict = None) -> Tuple[List[Dict], List[Dict]]:
        """
        Split the transaction history table into deposits and withdrawals.

        Returns:
            (deposits, withdrawals)
        """
        period = period or {}
        deposits, withdrawals = [], []
        capturing = False
        last = None

        for page_lines in lines:
            for line in page_lines:
                text = line_text(line)
                if not capturing:
                    capturing = text.startswith(self.history_heading)
                    continue
                if self._starts_with_any(text, self.history_end):
                    capturing = False
                    last = None
                    continue
                if any(pattern.search(text) for pattern in IGNORED_LINE_PATTERNS):
                    continue

                body, column, amount = self._split_row(line)
                date, description = self.split_date(body, period)
                has_date = self.date_regex.match(body) is not None

                if amount is None:
                    if not has_date and last is not None and last[1] == line['page']:
                        self._append_description(last[0], body)
                    continue

                if not has_date:
                    if self.is_noise(body):
                        continue
                    date = last[0]['date'] if last else period.get('start', UNKNOWN)

                target = deposits if column == 'deposit' else withdrawals
                signed = abs(amount) if column == 'deposit' else -abs(amount)
                transaction = self.build_transaction(date or period.get('start', UNKNOWN), description, signed)
                target.append(transaction)
                last = (transaction, line['page'])

        return deposits, withdrawals

    def _split_row(self, line: Dict) -> Tuple[str, Optional[str], Optional[float]]:
        """
        Separate the row text from its amount column.

        Returns:
            (text without amounts, 'deposit' or 'withdrawal' or None, amount or None)
        """
        words = []
        column, amount = None, None

        for fragment in sort_fragments_by_x(line):
            text = strip_text(fragment['text'])
            if not text:
                continue
            if AMOUNT_ONLY_REGEX.match(text):
                fragment_column = self._amount_column(fragment)
                if fragment_column and amount is None:
                    column, amount = fragment_column, parse_amount(text)
                continue
            words.append(text)

        body = ' '.join(words)
        if amount is not None:
            return body, column, amount

        # Coarse OCR: the amounts are part of a larger fragment
        match = AMOUNT_END_REGEX.search(body)
        if not match:
            return body, None, None
        head = body[:match.start()].strip()
        balance_match = AMOUNT_END_REGEX.search(head)
        if balance_match:
            amount_text, head = balance_match.group(1), head[:balance_match.start()].strip()
        else:
            amount_text = match.group(1)
        upper = head.upper()
        column = 'deposit' if any(keyword in upper for keyword in DEPOSIT_KEYWORDS) else 'withdrawal'
        return head, column, parse_amount(amount_text)

    def _amount_column(self, fragment: Dict) -> Optional[str]:
        vertices = fragment['bounding_poly']['normalized_vertices']
        center = (vertices['top_left']['x'] + vertices['top_right']['x']) / 2
        if self.deposit_column[0] <= center < self.deposit_column[1]:
            return 'deposit'
        if self.withdrawal_column[0] <= center < self.withdrawal_column[1]:
            return 'withdrawal'
        return None

    def _append_description(self, transaction: Dict, text: str):
        original = f"{transaction['description']['original']} {text}".strip()
        transaction['description'] = {
            'original': original,
            'shortened': self.shorten_description(original),
        }

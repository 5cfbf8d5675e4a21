"""
Regions Bank business statements
"""

import re
from typing import Dict, List

from config import UNKNOWN
from .base import BankLayout
from ..ocr_lines import first_page, line_text

HAS_LETTER_REGEX = re.compile(r'[a-zA-Z]')


class RegionsLayout(BankLayout):
    key = 'regions'
    name = 'Regions - Business'
    anchor = 'Regions Bank'

    period_regex = re.compile(r'(\w+ \d{1,2}, \d{4}) through (\w+ \d{1,2}, \d{4})')
    # OCR often turns digits of the date column into ',' or '.'
    date_regex = re.compile(r'^([0-9,.]{2})/([0-9,.]{2})(?=\s|$)')

    summary_heading = 'SUMMARY'
    summary_labels = [
        ('begin', 'Beginning Balance'),
        ('deposits', 'Deposits & Credits'),
        ('withdrawals', 'Withdrawals'),
        ('fees', 'Fees'),
        ('checks', 'Checks'),
        ('end', 'Ending Balance'),
    ]

    deposit_headings = ('DEPOSITS & CREDITS',)
    deposit_totals = ('Total Deposits & Credits',)
    withdrawal_headings = ('WITHDRAWALS', 'FEES', 'CHECKS')
    withdrawal_totals = ('Total Withdrawals', 'Total Fees', 'Total Checks')

    def extract_company(self, lines: List[List[Dict]]) -> Dict:
        """Name and address follow the mailing sequence marker "1" at the top of page 1"""
        page = first_page(lines)
        for i, line in enumerate(page):
            if line_text(line) != '1' or i + 1 >= len(page):
                continue
            company = {'name': line_text(page[i + 1]) or UNKNOWN}
            if i + 2 < len(page):
                company['address'] = line_text(page[i + 2])
            return company
        return {'name': UNKNOWN}

    def extract_account(self, lines: List[List[Dict]]) -> Dict:
        number = self.text_after_label(first_page(lines), re.compile(r'ACCOUNT #'))
        return {'number': number or UNKNOWN}

    def keep_transaction(self, transaction: Dict) -> bool:
        return bool(HAS_LETTER_REGEX.search(transaction['description']['original']))

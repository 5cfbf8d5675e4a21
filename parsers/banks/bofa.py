"""
Bank of America business statements

The customer service line "1.888.BUSINESS" identifies the layout. The
company name is printed on the line just above "Account number:".
"""

import re
from typing import Dict, List, Optional

from config import UNKNOWN
from .base import BankLayout, apply_shortened_prefixes
from ..ocr_lines import first_page, line_text


class BankOfAmericaLayout(BankLayout):
    key = 'bofa'
    name = 'Bank of America - Business'
    anchor = '1.888.BUSINESS'

    period_regex = re.compile(r'for (\w+ \d{1,2}, \d{4}) to (\w+ \d{1,2}, \d{4})')

    summary_labels = [
        ('begin', 'Beginning balance on'),
        ('deposits', 'Deposits and other credits'),
        ('withdrawals', 'Withdrawals and other debits'),
        ('checks', 'Checks'),
        ('fees', 'Service fees'),
        ('end', 'Ending balance on'),
    ]

    deposit_headings = ('Deposits and other credits',)
    deposit_totals = ('Total deposits and other credits',)
    withdrawal_headings = ('Withdrawals and other debits', 'Checks', 'Service fees')
    withdrawal_totals = ('Total withdrawals and other debits', 'Total checks', 'Total service fees')
    noise_patterns = [
        re.compile(r'^Card account # ', re.IGNORECASE),
        re.compile(r'^Subtotal for card account', re.IGNORECASE),
    ]

    def extract_company(self, lines: List[List[Dict]]) -> Dict:
        page = first_page(lines)
        for i, line in enumerate(page):
            if 'Account number:' in line_text(line) and i > 0:
                name = line_text(page[i - 1])
                return {'name': name or UNKNOWN}
        return {'name': UNKNOWN}

    def extract_account(self, lines: List[List[Dict]]) -> Dict:
        number = self.text_after_label(first_page(lines), re.compile(r'Account number:'))
        return {'number': number or UNKNOWN}

    def _find_summary_start(self, page: List[Dict]) -> Optional[int]:
        # Heading wording varies between statement generations; the first
        # "Beginning balance on" row opens the block
        for i, line in enumerate(page):
            if 'Beginning balance on' in line_text(line):
                return i
        return None

    def shorten_description(self, description: str) -> Optional[str]:
        if 'DES:' in description:
            shortened = description.split('DES:')[0].strip()
        else:
            shortened = apply_shortened_prefixes(description)
        return shortened if shortened and shortened != description else None

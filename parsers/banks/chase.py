"""
Chase business checking statements

Header fields sit at fixed positions on page 1; the period line reads
"March 1, 2023 through March 31, 2023".
"""

import re
from typing import Dict, List, Optional

from .base import BankLayout, apply_shortened_prefixes
from ..ocr_lines import first_page, lines_within_region, line_text

CARD_PURCHASE_REGEX = re.compile(r'^(?:Card Purchase(?: With Pin)?|Non-Chase ATM Withdrawal)\s+\d{2}/\d{2}\s+', re.IGNORECASE)
CARD_SUFFIX_REGEX = re.compile(r'\s+Card \d{4}$', re.IGNORECASE)
ONLINE_TRANSFER_REGEX = re.compile(r'^Online Transfer (?:To|From)\s+', re.IGNORECASE)


class ChaseLayout(BankLayout):
    key = 'chase'
    name = 'Chase - Business'
    anchor = 'Chase.com'

    company_region = ((0.08, 0.48), (0.1675, 0.22))
    account_region = ((0.565, 0.88), (0.0675, 0.085))
    account_label = re.compile(r'Account Number:')
    period_region = ((0.565, 0.88), (0.0525, 0.07))
    period_regex = re.compile(r'(\w+ \d{1,2}, \d{4}) through (\w+ \d{1,2}, \d{4})')

    summary_heading = 'CHECKING SUMMARY'
    summary_heading_region = ((0.05, 0.32), (0.62, 0.655))
    summary_labels = [
        ('begin', 'Beginning Balance'),
        ('end', 'Ending Balance'),
        ('deposits', 'Deposits and Additions'),
        ('checks', 'Checks Paid'),
        ('fees', 'Fees'),
        ('withdrawals', 'Withdrawals'),
    ]
    # "ATM & Debit Card Withdrawals" and "Electronic Withdrawals" are separate rows
    summary_accumulate = ('withdrawals',)

    deposit_headings = ('DEPOSITS AND ADDITIONS',)
    deposit_totals = ('Total Deposits and Additions',)
    withdrawal_headings = ('CHECKS PAID', 'ATM & DEBIT CARD WITHDRAWALS', 'ELECTRONIC WITHDRAWALS', 'FEES')
    withdrawal_totals = ('Total Checks Paid', 'Total ATM & Debit Card Withdrawals',
                         'Total Electronic Withdrawals', 'Total Fees')
    noise_patterns = [
        re.compile(r'^Card \d{4}\b', re.IGNORECASE),
        re.compile(r'^Total Card Purchases', re.IGNORECASE),
    ]

    def period_texts(self, lines: List[List[Dict]]) -> List[str]:
        return [line_text(line) for line in lines_within_region(first_page(lines), *self.period_region)]

    def shorten_description(self, description: str) -> Optional[str]:
        shortened = description
        for marker in (' Orig ID:', ' Transaction#:'):
            if marker in shortened:
                shortened = shortened.split(marker)[0].strip()
                break

        shortened = CARD_PURCHASE_REGEX.sub('', shortened)
        shortened = CARD_SUFFIX_REGEX.sub('', shortened)
        shortened = ONLINE_TRANSFER_REGEX.sub('', shortened).strip() or shortened
        shortened = apply_shortened_prefixes(shortened)

        return shortened if shortened != description else None

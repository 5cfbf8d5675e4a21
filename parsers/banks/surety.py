"""
Surety Bank statements

Only identification is template specific; every field uses the generic
lexical lookups of BankLayout.
"""

import re

from .base import BankLayout


class SuretyLayout(BankLayout):
    key = 'surety'
    name = 'Surety Bank - Business'
    anchor = 'Surety Bank'

    period_regex = re.compile(r'(\w+ \d{1,2}, \d{4}) (?:through|to|-) (\w+ \d{1,2}, \d{4})')

    summary_heading = 'Account Summary'
    summary_labels = [
        ('begin', 'Beginning Balance'),
        ('deposits', 'Deposits'),
        ('withdrawals', 'Withdrawals'),
        ('fees', 'Fees'),
        ('checks', 'Checks'),
        ('end', 'Ending Balance'),
    ]

    deposit_headings = ('Deposits',)
    deposit_totals = ('Total Deposits',)
    withdrawal_headings = ('Withdrawals', 'Checks', 'Fees')
    withdrawal_totals = ('Total Withdrawals', 'Total Checks', 'Total Fees')

"""
Shared builders for synthetic OCR documents.

Coordinates are normalized (0-1); absolute vertices use a 1000x1000 page.
A row is (y, text) for one fragment at the left margin, or
(y, [(x, text), ...]) for several fragments on the same line.
"""

import pytest

from parsers.ocr_lines import group_fragments_into_lines
from parsers.ocr_source import make_fragment

PAGE_SIZE = 1000.0
CHAR_WIDTH = 0.008
FRAGMENT_HEIGHT = 0.01
LEFT_MARGIN = 0.05


def text_fragment(text, x, y, page=0, width=None):
    """Fragment whose bottom edge sits at y"""
    width = width if width is not None else CHAR_WIDTH * max(len(text), 1)
    box = {
        'x0': x * PAGE_SIZE,
        'x1': (x + width) * PAGE_SIZE,
        'top': (y - FRAGMENT_HEIGHT) * PAGE_SIZE,
        'bottom': y * PAGE_SIZE,
    }
    return make_fragment(text, page, 0, len(text), box, PAGE_SIZE, PAGE_SIZE)


def page_from_rows(rows, page=0):
    fragments = []
    for y, content in rows:
        if isinstance(content, str):
            content = [(LEFT_MARGIN, content)]
        for x, text in content:
            fragments.append(text_fragment(text, x, y, page))
    return fragments


def page_from_texts(texts, page=0, start_y=0.05, step=0.02):
    """Evenly spaced single-fragment rows"""
    return page_from_rows([(start_y + i * step, text) for i, text in enumerate(texts)], page)


@pytest.fixture
def fragment():
    return text_fragment


@pytest.fixture
def rows_page():
    return page_from_rows


@pytest.fixture
def texts_page():
    return page_from_texts


@pytest.fixture
def make_lines():
    def _make_lines(*pages):
        return group_fragments_into_lines(list(pages))
    return _make_lines


# ============ SAMPLE DOCUMENTS ============

@pytest.fixture
def chase_pages():
    first = page_from_rows([
        (0.03, 'JPMorgan Chase Bank, N.A.'),
        (0.066, [(0.57, 'March 1, 2023 through March 31, 2023')]),
        (0.082, [(0.57, 'Account Number:'), (0.70, '000000123456789')]),
        (0.185, [(0.10, 'ACME HOLDINGS LLC')]),
        (0.20, [(0.10, '123 MAIN ST')]),
        (0.215, [(0.10, 'TAMPA FL 33601')]),
        (0.30, 'Web site: Chase.com'),
        (0.645, [(0.06, 'CHECKING SUMMARY')]),
        (0.665, [(0.06, 'Beginning Balance $10,000.00')]),
        (0.68, [(0.06, 'Deposits and Additions 3 1,500.00')]),
        (0.695, [(0.06, 'Checks Paid 1 200.00')]),
        (0.71, [(0.06, 'ATM & Debit Card Withdrawals 2 300.00')]),
        (0.725, [(0.06, 'Electronic Withdrawals 1 100.00')]),
        (0.74, [(0.06, 'Fees 1 15.00')]),
        (0.755, [(0.06, 'Ending Balance 8 10,885.00')]),
    ])
    second = page_from_texts([
        'DEPOSITS AND ADDITIONS',
        'DATE DESCRIPTION AMOUNT',
        '03/02 Deposit 1,000.00',
        '03/15 Online Transfer From Chk Xxxx1234 Transaction#: 555 400.00',
        '03/20 Remote Online Deposit 100.00',
        'Total Deposits and Additions $1,500.00',
        'CHECKS PAID',
        '03/10 1001 200.00',
        'Total Checks Paid $200.00',
        'ATM & DEBIT CARD WITHDRAWALS',
        '03/05 Card Purchase 03/04 Staples 00123 Tampa FL Card 1234 250.00',
        '03/12 Non-Chase ATM Withdrawal 03/12 Main St 50.00',
        'Total Card Purchases $250.00',
        'Total ATM & Debit Card Withdrawals $300.00',
        'ELECTRONIC WITHDRAWALS',
        '03/18 FLA DEPT REVENUE C01 100.00',
        'Total Electronic Withdrawals $100.00',
        'FEES',
        '03/31 Service Charge 15.00',
        'Total Fees $15.00',
    ], page=1)
    return [first, second]


@pytest.fixture
def bofa_pages():
    return [page_from_texts([
        'Bank of America, N.A. P.O. Box 15284',
        'Customer service information 1.888.BUSINESS (1.888.287.4637)',
        'Your Business Advantage Fundamentals Banking for March 1, 2023 to March 31, 2023',
        'ACME HOLDINGS LLC',
        'Account number: 1234 5678 9012',
        'Account summary',
        'Beginning balance on March 1, 2023 $5,000.00',
        'Deposits and other credits 2,000.00',
        'Withdrawals and other debits -700.00',
        'Checks -300.00',
        'Service fees -25.00',
        'Ending balance on March 31, 2023 $5,975.00',
        'Deposits and other credits',
        'Date Description Amount',
        '03/03/23 MOBILE DEPOSIT 1,500.00',
        '03/17/23 WESTERN UNION DES:TRANSFER ID:123 500.00',
        'Total deposits and other credits $2,000.00',
        'Withdrawals and other debits',
        '03/08/23 ADP PAYROLL DES:PAYROLL ID:XXXX -700.00',
        'Total withdrawals and other debits -$700.00',
        'Checks',
        '03/09/23 1203 -300.00',
        'Total checks -$300.00',
        'Service fees',
        '03/31/23 Monthly Fee Business Adv Fundamentals -25.00',
        'Total service fees -$25.00',
    ], step=0.03)]


@pytest.fixture
def ledger_texts():
    return [
        'ACME HOLDINGS LLC General Ledger',
        'March 1, 2023 - March 31, 2023',
        'Account Description Period End Balance',
        '1000 Cash - Operating 12,500.00',
        '03/05/23 104 PR STAPLES 45.00 12,455.00',
        '03/09/23 105 WESTERN UNION 120.00 12,335.00',
        'Totals for 1000 165.00 12,335.00',
        '4010 Office Supplies',
        '03/05/23 JV STAPLES 45.00 45.00',
        'Totals',
        'for 4010 45.00 45.00',
        '0.00 Unknown',
        '3130 SUSPENSE',
        'Totals for 3130 0.00 0.00',
        '9999 Net Profit',
        'Totals for 9999 0.00',
        'Distribution count: 4',
    ]


@pytest.fixture
def ledger_pages(ledger_texts):
    return [page_from_texts(ledger_texts)]


@pytest.fixture
def ledger_accounts():
    return [
        {'number': '4010', 'name': 'Office Supplies', 'beginning_balance': None, 'ending_balance': None,
         'amount_total': None,
         'entries': [{'date': '03/05/2023', 'description': 'STAPLES'},
                     {'date': '03/19/2023', 'description': 'STAPLES'},
                     {'date': '03/21/2023', 'description': 'OFFICE DEPOT'}]},
        {'number': '6100', 'name': 'Payroll', 'beginning_balance': None, 'ending_balance': None,
         'amount_total': None,
         'entries': [{'date': '03/08/2023', 'description': 'ADP PAYROLL'}]},
        {'number': '3130', 'name': 'SUSPENSE', 'beginning_balance': None, 'ending_balance': None,
         'amount_total': None, 'entries': []},
    ]

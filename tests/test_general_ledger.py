from parsers import GeneralLedger
from parsers.ledger_formats import detect_ledger_format
from parsers.ledger_formats.accountingcs import (parse_accounts, parse_entry, split_trailing_amounts,
                                                 account_sort_key)

TABLE_HEADER = 'Account Description Period End Balance'


def test_parse_accounts(ledger_texts):
    result = parse_accounts(ledger_texts)
    accounts = {a['number']: a for a in result['accounts']}

    assert [a['number'] for a in result['accounts']] == ['1000', '3130', '4010']
    assert result['distribution_count'] == 4

    cash = accounts['1000']
    assert cash['name'] == 'Cash - Operating'
    assert cash['beginning_balance'] == 12500.0
    assert cash['amount_total'] == 165.0
    assert cash['ending_balance'] == 12335.0
    assert cash['entries'] == [
        {'date': '03/05/2023', 'description': 'STAPLES', 'amount': 45.0},
        {'date': '03/09/2023', 'description': 'WESTERN UNION', 'amount': 120.0},
    ]


def test_split_totals_line_is_recognised(ledger_texts):
    supplies = next(a for a in parse_accounts(ledger_texts)['accounts'] if a['number'] == '4010')

    assert supplies['entries'] == [{'date': '03/05/2023', 'description': 'STAPLES', 'amount': 45.0}]
    assert supplies['amount_total'] == 45.0


def test_lines_before_the_table_are_ignored():
    result = parse_accounts(['1000 Cash', '03/01/23 DEPOSIT 10.00', 'Totals for 1000 10.00'])

    assert result['accounts'] == []


def test_entries_follow_the_totals_line_not_the_last_header():
    result = parse_accounts([
        TABLE_HEADER,
        '1000 Cash',
        '1100 Petty Cash',
        '03/01/23 PETTY CASH REPLENISH 5.00',
        'Totals for 1000 5.00',
    ])
    accounts = {a['number']: a for a in result['accounts']}

    assert len(accounts['1000']['entries']) == 1
    assert accounts['1100']['entries'] == []


def test_entries_held_until_account_header_appears():
    result = parse_accounts([
        TABLE_HEADER,
        '03/01/23 CUSTOMER PAYMENT 100.00',
        'Totals for 2000 100.00',
        '2000 Accounts Receivable',
    ])

    receivable = result['accounts'][0]
    assert receivable['number'] == '2000'
    assert receivable['entries'][0]['description'] == 'CUSTOMER PAYMENT'
    assert receivable['amount_total'] == 100.0


def test_entries_for_unknown_account_are_discarded():
    result = parse_accounts([
        TABLE_HEADER,
        '1000 Cash',
        '03/01/23 ORPHAN 1.00',
        'Totals for 5000 1.00',
    ])

    assert result['accounts'][0]['entries'] == []


def test_account_names_starting_with_digits():
    result = parse_accounts([
        'ACME HOLDINGS LLC General Ledger',
        TABLE_HEADER,
        '6100 401K Contributions',
        '01/05/23 JV EMPOWER RETIREMENT 250.00 250.00',
        'Totals for 6100 250.00 250.00',
        '5200 1099 Contractors 1,000.00',
        '01/09/23 JV SMITH CONSULTING 400.00 1,400.00',
        'Totals for 5200 400.00 1,400.00',
    ])
    accounts = {a['number']: a for a in result['accounts']}

    assert sorted(accounts) == ['5200', '6100']
    assert accounts['6100']['name'] == '401K Contributions'
    assert accounts['6100']['entries'][0]['description'] == 'EMPOWER RETIREMENT'
    assert accounts['5200']['name'] == '1099 Contractors'
    assert accounts['5200']['beginning_balance'] == 1000.0


def test_amount_only_lines_do_not_open_accounts():
    result = parse_accounts([
        TABLE_HEADER,
        '1000 Cash',
        '03/01/23 DEPOSIT 10.00',
        '165.00 12,335.00',
        'Totals for 1000 10.00',
    ])

    assert [a['number'] for a in result['accounts']] == ['1000']
    assert len(result['accounts'][0]['entries']) == 1


def test_duplicate_headers_merge():
    result = parse_accounts([
        TABLE_HEADER,
        '1000 Cash 100.00',
        '03/01/23 FIRST 1.00',
        'Totals for 1000 1.00',
        'Page 2',
        '1000 Cash',
        '03/02/23 SECOND 2.00',
        'Totals for 1000 3.00',
    ])

    assert len(result['accounts']) == 1
    cash = result['accounts'][0]
    assert [e['description'] for e in cash['entries']] == ['FIRST', 'SECOND']
    assert cash['beginning_balance'] == 100.0
    assert cash['amount_total'] == 3.0


def test_parse_entry():
    assert parse_entry('01/05/23', ' 104 PR STAPLES 45.00 1,045.00') == {
        'date': '01/05/2023', 'description': 'STAPLES', 'amount': 45.0}
    assert parse_entry('01/05/23', ' MEMO ONLY') == {'date': '01/05/2023', 'description': 'MEMO ONLY'}
    assert parse_entry('13/45/23', ' BAD DATE 1.00') is None


def test_split_trailing_amounts():
    assert split_trailing_amounts('STAPLES 45.00 (1,045.00)') == ('STAPLES', [45.0, -1045.0])
    assert split_trailing_amounts('NO AMOUNTS') == ('NO AMOUNTS', [])


def test_account_sort_key_numeric_before_text():
    accounts = [{'number': 'A100'}, {'number': '200'}, {'number': '1000'}, {'number': '30.5'}]

    assert [a['number'] for a in sorted(accounts, key=account_sort_key)] == ['30.5', '200', '1000', 'A100']


def test_general_ledger_from_fragments(ledger_pages):
    ledger = GeneralLedger.from_fragments(ledger_pages)

    assert ledger.is_identified()
    assert ledger.format == 'accountingcs'
    assert ledger.company == {'name': 'ACME HOLDINGS LLC'}
    assert ledger.period == {'start': '03/01/2023', 'end': '03/31/2023'}
    assert ledger.get_entry_count() == 3
    assert ledger.get_account('4010')['name'] == 'Office Supplies'
    assert ledger.get_account('9999') is None


def test_general_ledger_reconcile(ledger_pages):
    ledger = GeneralLedger.from_fragments(ledger_pages)

    report = ledger.reconcile()

    assert report['expected_entries'] == 4
    assert report['actual_entries'] == 3
    assert report['matches'] is False
    assert report['accounts'] == []


def test_general_ledger_reconcile_account_mismatch():
    ledger = GeneralLedger.from_accounts([{
        'number': '1000', 'name': 'Cash', 'beginning_balance': None, 'ending_balance': None,
        'amount_total': 50.0,
        'entries': [{'date': '03/01/2023', 'description': 'A', 'amount': 20.0}],
    }])

    report = ledger.reconcile()

    assert report['matches'] is None
    assert report['accounts'] == [{'number': '1000', 'name': 'Cash', 'entries_sum': 20.0,
                                   'amount_total': 50.0, 'difference': -30.0}]


def test_unrecognised_ledger(make_lines, texts_page):
    lines = make_lines(texts_page(['Trial Balance', 'Account Debit Credit']))

    assert detect_ledger_format(lines) is None
    ledger = GeneralLedger(lines)
    assert not ledger.is_identified()
    assert ledger.accounts == []

from types import SimpleNamespace

import pytest

from parsers import GeneralLedger, BankStatement
from processors import Coder, code_statements
from processors.coder import strip_digits


def _transaction(original, shortened=None, amount=-10.0):
    return {'date': '03/05/2023', 'description': {'original': original, 'shortened': shortened},
            'amount': amount}


@pytest.fixture
def ledger(ledger_accounts):
    return GeneralLedger.from_accounts(ledger_accounts, company='ACME HOLDINGS LLC')


@pytest.fixture
def statement():
    return SimpleNamespace(
        bank='Chase - Business',
        account={'number': '000000123456789'},
        period={'start': '03/01/2023', 'end': '03/31/2023'},
        deposits=[_transaction('CHECKCARD 0305 STAPLES 999', 'STAPLES', 25.0)],
        withdrawals=[
            _transaction('CHECKCARD 0305 STAPLES 123', 'STAPLES'),
            _transaction('CHECKCARD 0312 STAPLES 456', 'STAPLES'),
            _transaction('CHECKCARD 0312 OFFICE DEPOT', 'OFFICE DEPOT'),
            _transaction('ZELLE PAYMENT JOHN'),
        ],
    )


@pytest.fixture
def coder(statement, ledger):
    return Coder(statement, ledger)


def test_initial_selection_is_top_match(coder):
    transaction = coder.get_transaction('withdrawals', 0)

    assert transaction['selection'] == {
        'account': {'name': 'Office Supplies', 'number': '4010', 'index': 0},
        'entry': {'description': 'STAPLES', 'ratio': 1.0, 'index': 0},
    }
    assert transaction['selection_override'] == {
        'account': {'name': 'Office Supplies', 'number': '4010'},
        'entry': {'description': 'STAPLES', 'enabled': False},
        'enabled': False,
    }


def test_statement_is_not_modified(coder, statement):
    assert 'selection' not in statement.withdrawals[0]
    assert 'matches' not in statement.withdrawals[0]


def test_override_leaves_selection_untouched(coder):
    before = dict(coder.get_transaction('withdrawals', 0)['selection'])

    coder.update_override_account('withdrawals', 0, {'name': 'Payroll', 'number': '6100'})
    coder.update_override_entry('withdrawals', 0, 'STAPLES REFUND')
    assert coder.toggle_override('withdrawals', 0) is True
    assert coder.toggle_override_entry('withdrawals', 0) is True

    transaction = coder.get_transaction('withdrawals', 0)
    assert transaction['selection'] == before
    assert transaction['selection_override'] == {
        'account': {'name': 'Payroll', 'number': '6100'},
        'entry': {'description': 'STAPLES REFUND', 'enabled': True},
        'enabled': True,
    }


def test_disabling_override_restores_automatic_coding(coder):
    before_coding = coder.effective_coding('withdrawals', 0)
    before_selection = dict(coder.get_transaction('withdrawals', 0)['selection'])

    coder.update_override_account('withdrawals', 0, {'name': 'Payroll', 'number': '6100'})
    coder.update_override_entry('withdrawals', 0, 'STAPLES REFUND')
    coder.toggle_override('withdrawals', 0)
    coder.toggle_override_entry('withdrawals', 0)
    assert coder.effective_coding('withdrawals', 0) != before_coding

    assert coder.toggle_override('withdrawals', 0) is False
    assert coder.toggle_override_entry('withdrawals', 0) is False

    assert coder.effective_coding('withdrawals', 0) == before_coding
    assert coder.get_transaction('withdrawals', 0)['selection'] == before_selection


def test_toggle_with_explicit_value(coder):
    assert coder.toggle_override('withdrawals', 1, enabled=False) is False
    assert coder.toggle_override('withdrawals', 1) is True
    assert coder.toggle_override('withdrawals', 1) is False


def test_effective_coding(coder):
    assert coder.effective_coding('withdrawals', 0) == {
        'account': {'name': 'Office Supplies', 'number': '4010'}, 'entry': 'STAPLES', 'overridden': False}

    coder.update_override_account('withdrawals', 0, {'name': 'Payroll', 'number': '6100'})
    coder.toggle_override('withdrawals', 0)
    coding = coder.effective_coding('withdrawals', 0)
    assert coding['account'] == {'name': 'Payroll', 'number': '6100'}
    assert coding['overridden'] is True

    coder.update_override_entry('withdrawals', 0, 'SUPPLIES')
    coder.toggle_override_entry('withdrawals', 0)
    assert coder.effective_coding('withdrawals', 0)['entry'] == 'SUPPLIES'


def test_get_override_entries(coder):
    entries = coder.get_override_entries('withdrawals', 0, '4010')

    assert entries[0]['description'] == 'STAPLES'
    assert coder.get_override_entries('withdrawals', 0, '9999') == []


def test_update_selection_entry(coder):
    transaction = coder.get_transaction('withdrawals', 0)
    entries = transaction['matches'][0]['entries']

    selection = coder.update_selection_entry('withdrawals', 0, len(entries) - 1)
    assert selection['entry']['index'] == len(entries) - 1

    with pytest.raises(IndexError):
        coder.update_selection_entry('withdrawals', 0, len(entries))


def test_strip_digits():
    assert strip_digits('CHECKCARD 0305 STAPLES 123') == 'CHECKCARD  STAPLES '


def test_propagate_override_scope(coder):
    coder.update_override_account('withdrawals', 0, {'name': 'Payroll', 'number': '6100'})
    coder.toggle_override('withdrawals', 0)
    before = coder.get_transactions('withdrawals')

    changed = coder.propagate_override('withdrawals', 0)

    withdrawals = coder.get_transactions('withdrawals')
    assert changed == 1
    assert withdrawals is not before
    source, target = withdrawals[0], withdrawals[1]
    assert target['selection_override'] == source['selection_override']
    assert target['selection_override'] is not source['selection_override']
    # Different description once digits are removed
    assert withdrawals[2]['selection_override']['enabled'] is False
    # Other list untouched
    assert coder.get_transaction('deposits', 0)['selection_override']['enabled'] is False
    # Readers holding the old list see no partial update
    assert before[1]['selection_override']['enabled'] is False


def test_propagated_override_is_independent(coder):
    coder.update_override_entry('withdrawals', 0, 'SUPPLIES')
    coder.propagate_override('withdrawals', 0)

    coder.update_override_entry('withdrawals', 1, 'CHANGED')

    assert coder.get_transaction('withdrawals', 0)['selection_override']['entry']['description'] == 'SUPPLIES'


def test_propagate_selection_recomputes_indices(coder):
    coder.update_selection_entry('withdrawals', 0, 0)

    assert coder.propagate_selection('withdrawals', 0) == 1

    target = coder.get_transaction('withdrawals', 1)
    assert target['selection']['account']['number'] == '4010'
    assert target['selection']['account']['index'] == 0
    assert target['selection']['entry']['index'] == 0


def test_suspense_in_summary(coder):
    summary = coder.get_summary()

    assert summary['method'] == 'levenshtein'
    assert summary['withdrawals']['count'] == 4
    assert summary['withdrawals']['suspense'] == 1
    assert summary['deposits']['suspense'] == 0
    assert summary['withdrawals']['total'] == -40.0


def test_remove_and_update_amount(coder):
    coder.update_transaction_amount('withdrawals', 0, 12.5)
    assert coder.get_transaction('withdrawals', 0)['amount'] == -12.5
    coder.update_transaction_amount('deposits', 0, -30)
    assert coder.get_transaction('deposits', 0)['amount'] == 30

    removed = coder.remove_transaction('withdrawals', 3)
    assert removed['description']['original'] == 'ZELLE PAYMENT JOHN'
    assert len(coder.get_transactions('withdrawals')) == 3


def test_errors(coder):
    with pytest.raises(ValueError):
        coder.get_transactions('fees')
    with pytest.raises(IndexError):
        coder.update_override_entry('deposits', 5, 'X')
    with pytest.raises(IndexError):
        coder.propagate_override('withdrawals', -1)


def test_to_dict(coder):
    data = coder.to_dict()

    assert data['bank'] == 'Chase - Business'
    assert len(data['transactions']['withdrawals']) == 4
    assert data['transactions']['withdrawals'][0]['coding']['account']['number'] == '4010'


def test_code_statements_keeps_order(chase_pages, bofa_pages, ledger):
    statements = [BankStatement.from_fragments(chase_pages), BankStatement.from_fragments(bofa_pages)]

    coders = code_statements(statements, ledger, max_workers=2)

    assert [c.statement.bank for c in coders] == ['Chase - Business', 'Bank of America - Business']
    assert len(coders[0].get_transactions('withdrawals')) == 5


def test_code_statements_empty(ledger):
    assert code_statements([], ledger) == []

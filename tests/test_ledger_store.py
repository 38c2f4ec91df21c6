"""
Tests for the ledger store unit-of-work primitives.
"""
from decimal import Decimal

import pytest

from models import Credit, CreditStatus, TransactionType
from services.errors import CodeCollisionError, ConcurrentModificationError, CreditNotFoundError


def insert_credit(store, code="SC-TEST0000-AAAA-00", amount=Decimal("10.00")):
    def fn(session):
        credit = Credit(code=code, original_amount=amount, balance=amount, currency="USD", status=CreditStatus.ACTIVE)
        session.add(credit)
        session.flush()
        store.append_transaction(session, credit, TransactionType.ISSUE, amount)
        return credit

    return store.create_credit(fn)


class TestLedgerStore:
    def test_create_and_read_back(self, store):
        credit = insert_credit(store)
        assert store.get_credit(credit.id).code == "SC-TEST0000-AAAA-00"
        assert store.get_credit_by_code("SC-TEST0000-AAAA-00").id == credit.id
        assert store.code_exists("SC-TEST0000-AAAA-00")
        assert not store.code_exists("SC-OTHER000-AAAA-00")
        assert store.get_credit(999) is None

    def test_duplicate_code_raises_collision(self, store):
        insert_credit(store)
        with pytest.raises(CodeCollisionError):
            insert_credit(store)

    def test_lock_commits_balance_and_entry_together(self, store):
        credit = insert_credit(store)

        def spend(session, locked):
            locked.balance = locked.balance - Decimal("4.00")
            return store.append_transaction(session, locked, TransactionType.REDEEM, Decimal("-4.00"))

        entry = store.with_credit_lock(credit.id, spend)

        assert entry.balance_after == Decimal("6.00")
        assert store.get_credit(credit.id).balance == Decimal("6.00")
        assert len(store.transactions_for_credit(credit.id)) == 2

    def test_lock_rolls_back_on_error(self, store):
        credit = insert_credit(store)

        def fail_midway(session, locked):
            locked.balance = Decimal("0.00")
            store.append_transaction(session, locked, TransactionType.REDEEM, Decimal("-10.00"))
            session.flush()
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.with_credit_lock(credit.id, fail_midway)

        assert store.get_credit(credit.id).balance == Decimal("10.00")
        assert len(store.transactions_for_credit(credit.id)) == 1

    def test_lock_missing_credit(self, store):
        with pytest.raises(CreditNotFoundError):
            store.with_credit_lock(42, lambda session, credit: None)

    def test_stale_write_detected(self, store):
        credit = insert_credit(store)

        def bump_from_outside(session, locked):
            # Another writer commits while this unit still holds its copy
            store.with_credit_lock(credit.id, lambda s, c: setattr(c, "note", "changed"))
            locked.balance = Decimal("1.00")

        with pytest.raises(ConcurrentModificationError):
            store.with_credit_lock(credit.id, bump_from_outside)

        reloaded = store.get_credit(credit.id)
        assert reloaded.balance == Decimal("10.00")
        assert reloaded.note == "changed"

    def test_version_increments_on_update(self, store):
        credit = insert_credit(store)
        assert store.get_credit(credit.id).version == 1
        store.with_credit_lock(credit.id, lambda s, c: setattr(c, "note", "x"))
        assert store.get_credit(credit.id).version == 2

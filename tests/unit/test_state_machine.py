"""Tests for the transaction lifecycle rules."""

import pytest
from types import SimpleNamespace

from core.exceptions import InvalidStateTransitionError, ValidationError
from models.product import ProductStatus
from models.transaction import TransactionStatus
from services.transaction import (
    PRODUCT_STATUS_FOR_TRANSACTION,
    TransactionStateMachine,
    derive_product_status,
    parse_status,
    state_machine,
)


def _tx(status):
    return SimpleNamespace(status=status)


@pytest.mark.unit
@pytest.mark.parametrize("current,target", [
    (TransactionStatus.PENDING, TransactionStatus.CONFIRMED),
    (TransactionStatus.PENDING, TransactionStatus.CANCELED),
    (TransactionStatus.CONFIRMED, TransactionStatus.COMPLETED),
    (TransactionStatus.CONFIRMED, TransactionStatus.CANCELED),
])
def test_allowed_transitions(current, target):
    assert state_machine.can_transition(current, target)
    state_machine.validate_transition(current, target)


@pytest.mark.unit
@pytest.mark.parametrize("current,target", [
    (TransactionStatus.PENDING, TransactionStatus.COMPLETED),
    (TransactionStatus.PENDING, TransactionStatus.PENDING),
    (TransactionStatus.CONFIRMED, TransactionStatus.PENDING),
    (TransactionStatus.COMPLETED, TransactionStatus.CANCELED),
    (TransactionStatus.CANCELED, TransactionStatus.CONFIRMED),
])
def test_illegal_transitions_are_rejected(current, target):
    assert not state_machine.can_transition(current, target)
    with pytest.raises(InvalidStateTransitionError) as exc_info:
        state_machine.validate_transition(current, target)

    assert exc_info.value.status_code == 409
    assert exc_info.value.details["from_status"] == current.value
    assert exc_info.value.details["to_status"] == target.value


@pytest.mark.unit
def test_terminal_statuses():
    assert state_machine.is_terminal(TransactionStatus.COMPLETED)
    assert state_machine.is_terminal(TransactionStatus.CANCELED)
    assert not state_machine.is_terminal(TransactionStatus.PENDING)
    assert state_machine.allowed_from(TransactionStatus.COMPLETED) == frozenset()

    custom = TransactionStateMachine({TransactionStatus.PENDING: frozenset()})
    assert custom.is_terminal(TransactionStatus.PENDING)


@pytest.mark.unit
def test_product_status_follows_transaction_status():
    assert PRODUCT_STATUS_FOR_TRANSACTION[TransactionStatus.COMPLETED] == ProductStatus.SOLD
    assert PRODUCT_STATUS_FOR_TRANSACTION[TransactionStatus.CANCELED] == ProductStatus.AVAILABLE
    assert PRODUCT_STATUS_FOR_TRANSACTION[TransactionStatus.CONFIRMED] == ProductStatus.RESERVED
    assert TransactionStatus.PENDING not in PRODUCT_STATUS_FOR_TRANSACTION


@pytest.mark.unit
def test_derive_product_status():
    assert derive_product_status([]) == ProductStatus.AVAILABLE
    assert derive_product_status([_tx(TransactionStatus.CANCELED)]) == ProductStatus.AVAILABLE
    assert derive_product_status([
        _tx(TransactionStatus.CANCELED),
        _tx(TransactionStatus.PENDING),
    ]) == ProductStatus.RESERVED
    assert derive_product_status([
        _tx(TransactionStatus.CONFIRMED),
        _tx(TransactionStatus.COMPLETED),
    ]) == ProductStatus.SOLD


@pytest.mark.unit
def test_parse_status():
    assert parse_status("Confirmed") == TransactionStatus.CONFIRMED
    assert parse_status(TransactionStatus.CANCELED) == TransactionStatus.CANCELED

    with pytest.raises(ValidationError) as exc_info:
        parse_status("Shipped")
    assert exc_info.value.details["field"] == "status"
    assert "Pending" in exc_info.value.details["allowed"]

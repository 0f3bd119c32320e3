# Overview: Shared JSON error mapping for ledger errors raised by services.

from flask import jsonify

from ..errors import (
    LedgerError,
    InputError,
    UnknownProduct,
    SaleNotFound,
    CapacityError,
    ConcurrencyError,
    ConflictError,
)


def status_for(error: LedgerError) -> int:
    if isinstance(error, (UnknownProduct, SaleNotFound)):
        return 404
    if isinstance(error, InputError):
        return 400
    if isinstance(error, (CapacityError, ConcurrencyError, ConflictError)):
        return 409
    return 400


def ledger_error_response(error: LedgerError):
    return jsonify(error.to_dict()), status_for(error)

"""
Error Message Utilities

Human-readable messages for database constraint violations, and the single
place where asyncpg exceptions become domain errors.
"""

import asyncio
import logging
import re

import asyncpg

from errors import (
    DuplicateError,
    InvalidDataError,
    InvalidForeignKeyError,
    StoreDomainError,
    StoreError,
)
from models import PaymentType, SaleStatus

logger = logging.getLogger(__name__)

# Exceptions that mean "the store failed", as opposed to a bug in our code
STORE_EXCEPTIONS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


def _choices(enum) -> str:
    """Comma-separated values of a model enum, for CHECK constraint hints."""
    return ", ".join(member.value for member in enum)


# Human-readable constraint explanations
CONSTRAINT_MESSAGES = {
    "clients_email_key": "A client with this email already exists.",
    "clients_cpf_key": "A client with this CPF already exists.",
    "clients_cnpj_key": "A client with this CNPJ already exists.",
    "suppliers_cpf_key": "A supplier with this CPF already exists.",
    "suppliers_cnpj_key": "A supplier with this CNPJ already exists.",
    "product_categories_name_key": "A category with this name already exists.",
    "check_cpf_length": "CPF must have exactly 11 digits.",
    "check_cnpj_length": "CNPJ must have exactly 14 digits.",
    "check_supplier_cpf_length": "CPF must have exactly 11 digits.",
    "check_supplier_cnpj_length": "CNPJ must have exactly 14 digits.",
    "check_total_amount": "Total amount must not be negative.",
    "check_total_discount": "Discount must be between zero and the total amount.",
    "check_total_items_amount": "Items amount must not be negative.",
    "check_total_items_discount": "Items discount must be between zero and the items amount.",
    "check_total_sale_discount": "Sale discount must not be negative.",
    "check_payment_type": "Valid values for payment_type: " + _choices(PaymentType),
    "check_sale_status": "Valid values for status: " + _choices(SaleStatus),
    "sales_client_id_fkey": "The referenced client does not exist.",
}


def enhance_error_message(error: Exception) -> str:
    """
    Enhance database error messages with human-readable explanations.

    Handles:
    - Unique violations (names the duplicated value)
    - Check constraint violations (adds explanation of the constraint)
    - Foreign key violations (explains the relationship)
    - Not-null violations and bad text representations

    Returns the enhanced error message string.
    """
    error_str = str(error)

    unique_match = re.search(r'duplicate key value violates unique constraint "(\w+)"', error_str)
    if unique_match:
        constraint_name = unique_match.group(1)
        explanation = CONSTRAINT_MESSAGES.get(constraint_name)
        if explanation:
            return f"Duplicate entry: {explanation}"
        return f"Duplicate entry: A record with this value already exists ({constraint_name})."

    constraint_match = re.search(r'violates check constraint "(\w+)"', error_str)
    if constraint_match:
        constraint_name = constraint_match.group(1)
        explanation = CONSTRAINT_MESSAGES.get(constraint_name)
        if explanation:
            return f"Constraint violation ({constraint_name}): {explanation}"
        return f"Constraint violation: {constraint_name}."

    fk_match = re.search(r'violates foreign key constraint "(\w+)"', error_str)
    if fk_match:
        constraint_name = fk_match.group(1)
        explanation = CONSTRAINT_MESSAGES.get(constraint_name, "The referenced record does not exist.")
        return f"Foreign key violation ({constraint_name}): {explanation}"

    null_match = re.search(r'null value in column "(\w+)".* violates not-null constraint', error_str)
    if null_match:
        column_name = null_match.group(1)
        return f"Required field missing: '{column_name}' cannot be null."

    syntax_match = re.search(r'invalid input syntax for type (\w+): "([^"]*)"', error_str)
    if syntax_match:
        return f"Invalid value '{syntax_match.group(2)}' for type {syntax_match.group(1)}."

    return error_str


def translate_store_error(error: BaseException, operation: str) -> StoreDomainError:
    """
    Map a driver exception to the domain error for `operation`.

    Constraint violations keep an explanatory message; anything else becomes
    a StoreError whose message does not carry driver text.
    """
    if isinstance(error, StoreDomainError):
        return error
    if isinstance(error, asyncpg.UniqueViolationError):
        return DuplicateError(enhance_error_message(error))
    if isinstance(error, asyncpg.ForeignKeyViolationError):
        return InvalidForeignKeyError(enhance_error_message(error))
    if isinstance(error, (
        asyncpg.CheckViolationError,
        asyncpg.NotNullViolationError,
        asyncpg.InvalidTextRepresentationError,
    )):
        return InvalidDataError(enhance_error_message(error))

    logger.error(f"Store failure during {operation}: {type(error).__name__}: {error}")
    return StoreError(operation)

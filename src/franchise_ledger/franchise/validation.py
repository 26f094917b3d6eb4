"""
Franchise Module Validation - Field-schema checks on inbound commands

Every command type has a fixed, ordered list of field validators. Each
validator is a pure predicate over the command's field map returning zero
or one error message. All validators run; the result carries the distinct
error messages in first-seen order.

Validation is the first stage of the pipeline and its failures are
terminal: a malformed command never becomes valid by retrying.
"""

import re
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from franchise_ledger.franchise.commands import (
    FRANCHISE_COMMAND_TYPES,
    FranchiseCommand,
    to_typed_command,
)
from franchise_ledger.kernel.commands import Command
from franchise_ledger.kernel.config import LedgerSettings
from franchise_ledger.kernel.errors import UnknownCommandTypeError, ValidationError
from franchise_ledger.kernel.ids import is_valid_uuid

UNKNOWN_TYPE_MESSAGE = "Type doesn't exist in the system!"
ADDRESSING_MESSAGE = "aggregateId or franchiseId is required"

_INTEGER = re.compile(r"[+-]?\d+")

Fields = dict[str, Any]
Validator = Callable[[Fields], str | None]


class ValidationResult(BaseModel):
    """Outcome of validating one command"""

    valid: bool
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str]) -> "ValidationResult":
        distinct = list(dict.fromkeys(errors))
        return cls(valid=not distinct, errors=distinct)


def _parse_int(value: Any) -> int | None:
    """Integer value of an int or an optionally-signed integer string"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER.fullmatch(value.strip()):
        return int(value)
    return None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


# ========== Validator factories ==========


def required(field: str) -> Validator:
    """Absent, None, empty or blank values fail"""

    def check(fields: Fields) -> str | None:
        if _is_blank(fields.get(field)):
            return f"{field} is required"
        return None

    return check


def is_non_empty_string(field: str) -> Validator:
    def check(fields: Fields) -> str | None:
        value = fields.get(field, "")
        if not isinstance(value, str) or not value.strip():
            return f"{field} must be a non-empty string"
        return None

    return check


def matches_pattern(field: str, regex: str) -> Validator:
    """Full match of the field's string form; an absent field matches as ''"""
    compiled = re.compile(regex)

    def check(fields: Fields) -> str | None:
        value = fields.get(field)
        text = "" if value is None else str(value)
        if not compiled.fullmatch(text):
            return f"{field} does not match the required pattern {regex}"
        return None

    return check


def is_numeric(field: str) -> Validator:
    """Integers and optionally-signed integer strings pass; bools do not"""

    def check(fields: Fields) -> str | None:
        if _parse_int(fields.get(field, "")) is None:
            return f"{field} must be a numeric value"
        return None

    return check


def is_positive(field: str) -> Validator:
    def check(fields: Fields) -> str | None:
        value = _parse_int(fields.get(field, ""))
        if value is None:
            return f"{field} must be a numeric value"
        if value <= 0:
            return f"{field} must be a positive number"
        return None

    return check


def is_uuid(field: str) -> Validator:
    def check(fields: Fields) -> str | None:
        if not is_valid_uuid(fields.get(field, "")):
            return f"{field} must be a valid UUID"
        return None

    return check


def min_length(field: str, length: int) -> Validator:
    def check(fields: Fields) -> str | None:
        value = fields.get(field)
        if isinstance(value, str) and len(value) < length:
            return f"{field} must have at least {length} characters"
        return None

    return check


def max_length(field: str, length: int) -> Validator:
    def check(fields: Fields) -> str | None:
        value = fields.get(field)
        if isinstance(value, str) and len(value) > length:
            return f"{field} must have no more than {length} characters"
        return None

    return check


def item_max_length(field: str, key: str, length: int) -> Validator:
    """Bound a string key of every object in a list field; first offender wins"""

    def check(fields: Fields) -> str | None:
        items = fields.get(field)
        if not isinstance(items, list):
            return None
        for index, item in enumerate(items):
            value = item.get(key) if isinstance(item, dict) else None
            if isinstance(value, str) and len(value) > length:
                return f"{field}[{index}].{key} must have no more than {length} characters"
        return None

    return check


def is_in_range(field: str, minimum: int, maximum: int) -> Validator:
    def check(fields: Fields) -> str | None:
        value = _parse_int(fields.get(field, 0))
        if value is None or value < minimum or value > maximum:
            return f"{field} must be between {minimum} and {maximum}"
        return None

    return check


def is_one_of(field: str, *valid_values: str) -> Validator:
    def check(fields: Fields) -> str | None:
        if fields.get(field, "") not in valid_values:
            return f"{field} must be one of {', '.join(valid_values)}"
        return None

    return check


def is_non_empty_list(field: str) -> Validator:
    def check(fields: Fields) -> str | None:
        value = fields.get(field)
        if not isinstance(value, list) or not value:
            return f"{field} must be a non-empty list"
        return None

    return check


def optional(validator: Validator, field: str) -> Validator:
    """Run validator only when the field is present and not None"""

    def check(fields: Fields) -> str | None:
        if fields.get(field) is None:
            return None
        return validator(fields)

    return check


def addressed() -> Validator:
    """Non-creation commands must name their aggregate somehow"""

    def check(fields: Fields) -> str | None:
        if _is_blank(fields.get("aggregateId")) and _is_blank(fields.get("franchiseId")):
            return ADDRESSING_MESSAGE
        return None

    return check


# ========== Schemas ==========


def build_schemas(identifier_pattern: str, name_max_length: int) -> dict[str, list[Validator]]:
    """
    Ordered validator lists per command type

    Args:
        identifier_pattern: Full-match regex for franchise and branch ids
        name_max_length: Upper bound for franchise, branch and product names
    """
    pattern = identifier_pattern

    def identifier(field: str) -> list[Validator]:
        return [required(field), matches_pattern(field, pattern)]

    def text(field: str) -> list[Validator]:
        return [required(field), is_non_empty_string(field)]

    def name(field: str) -> list[Validator]:
        return [*text(field), max_length(field, name_max_length)]

    def optional_franchise() -> list[Validator]:
        return [addressed(), optional(matches_pattern("franchiseId", pattern), "franchiseId")]

    return {
        "CreateFranchise": [
            *text("franchiseId"),
            matches_pattern("franchiseId", pattern),
            *name("franchiseName"),
        ],
        "UpdateFranchiseName": [
            *text("franchiseId"),
            matches_pattern("franchiseId", pattern),
            *name("newName"),
        ],
        "AddBranch": [
            *identifier("franchiseId"),
            *identifier("branchId"),
            *name("branchName"),
        ],
        "UpdateBranchName": [
            *identifier("franchiseId"),
            *identifier("branchId"),
            *name("newName"),
        ],
        "AddProductToBranch": [
            *identifier("franchiseId"),
            *identifier("branchId"),
            *name("productName"),
            required("initialStock"),
            is_numeric("initialStock"),
            is_positive("initialStock"),
            optional(is_non_empty_string("productId"), "productId"),
        ],
        "AddProductsToBranch": [
            *identifier("franchiseId"),
            *identifier("branchId"),
            required("products"),
            is_non_empty_list("products"),
            item_max_length("products", "productName", name_max_length),
        ],
        "UpdateProductStock": [
            *optional_franchise(),
            *identifier("branchId"),
            *text("productId"),
            required("quantityChange"),
            is_numeric("quantityChange"),
        ],
        "AdjustProductStock": [
            *optional_franchise(),
            *identifier("branchId"),
            *text("productId"),
            required("newStock"),
            is_numeric("newStock"),
        ],
        "TransferProductBetweenBranches": [
            *optional_franchise(),
            *text("fromBranchId"),
            *text("toBranchId"),
            *text("productId"),
            required("quantity"),
            is_numeric("quantity"),
            is_positive("quantity"),
        ],
        "RemoveProductFromBranch": [
            *identifier("franchiseId"),
            *identifier("branchId"),
            *text("productId"),
        ],
        "RemoveBranch": [
            *identifier("franchiseId"),
            *identifier("branchId"),
        ],
        "RemoveFranchise": [
            *identifier("franchiseId"),
        ],
        "NotifyStockDepleted": [
            *optional_franchise(),
            *identifier("branchId"),
            *text("productId"),
        ],
    }


class CommandValidator:
    """
    Validates command envelopes against per-type schemas

    Stateless apart from the compiled schemas; safe to share across
    concurrent requests.
    """

    def __init__(self, settings: LedgerSettings | None = None) -> None:
        settings = settings or LedgerSettings()
        self.schemas = build_schemas(settings.identifier_pattern, settings.max_name_length)

    def validate(self, command: Command) -> ValidationResult:
        """
        Run every validator for the command's type

        Returns:
            ValidationResult with the distinct, order-preserving errors
        """
        schema = self.schemas.get(command.type)
        if schema is None:
            return ValidationResult(valid=False, errors=[UNKNOWN_TYPE_MESSAGE])

        checks = [*schema, optional(is_uuid("aggregateId"), "aggregateId")]
        errors = [message for check in checks if (message := check(command.fields))]
        return ValidationResult.from_errors(errors)

    def parse(self, command: Command) -> FranchiseCommand:
        """
        Validate the envelope and convert it into its typed command

        Raises:
            UnknownCommandTypeError: If the type is not registered
            ValidationError: If any field validator fails, or the typed
                model rejects nested input (e.g. a malformed product item)
        """
        if command.type not in FRANCHISE_COMMAND_TYPES:
            raise UnknownCommandTypeError(command.type)

        result = self.validate(command)
        if not result.valid:
            raise ValidationError(command.type, result.errors)

        try:
            return to_typed_command(command)
        except PydanticValidationError as e:
            raise ValidationError(command.type, _format_model_errors(e)) from e


def _format_model_errors(error: PydanticValidationError) -> list[str]:
    messages = []
    for detail in error.errors():
        path = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{path}: {detail['msg']}")
    return list(dict.fromkeys(messages))


_default_validator = CommandValidator()


def validate(command: Command) -> ValidationResult:
    """Validate with default settings (identifier pattern [A-Z]*\\d+)"""
    return _default_validator.validate(command)

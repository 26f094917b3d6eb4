"""
Tests for command validation

Every validator runs, the result lists each distinct error once in the
order first seen, and unknown types are rejected outright.
"""

import pytest

from franchise_ledger.franchise.commands import (
    AddProductsToBranch,
    CreateFranchise,
    UpdateProductStock,
)
from franchise_ledger.franchise.validation import (
    CommandValidator,
    is_in_range,
    is_numeric,
    is_one_of,
    is_positive,
    is_uuid,
    item_max_length,
    matches_pattern,
    max_length,
    min_length,
    required,
    validate,
)
from franchise_ledger.kernel.commands import create_command
from franchise_ledger.kernel.config import LedgerSettings
from franchise_ledger.kernel.errors import UnknownCommandTypeError, ValidationError

PATTERN_ERROR = r"does not match the required pattern [A-Z]*\d+"


def test_valid_create_franchise() -> None:
    result = validate(
        create_command({"type": "CreateFranchise", "franchiseId": "STB1", "franchiseName": "Starbucks"})
    )
    assert result.valid is True
    assert result.errors == []


def test_unknown_type() -> None:
    result = validate(create_command({"type": "LaunchRocket"}))
    assert result.valid is False
    assert result.errors == ["Type doesn't exist in the system!"]


def test_missing_type_is_unknown() -> None:
    result = validate(create_command({"franchiseId": "STB1"}))
    assert result.errors == ["Type doesn't exist in the system!"]


def test_all_validators_run_and_errors_are_ordered() -> None:
    """Missing fields trip every validator on them, in schema order"""
    result = validate(create_command({"type": "CreateFranchise"}))

    assert result.valid is False
    assert result.errors == [
        "franchiseId is required",
        "franchiseId must be a non-empty string",
        f"franchiseId {PATTERN_ERROR}",
        "franchiseName is required",
        "franchiseName must be a non-empty string",
    ]


def test_errors_are_distinct() -> None:
    """is_numeric and is_positive report the same message once"""
    result = validate(
        create_command(
            {
                "type": "AddProductToBranch",
                "franchiseId": "STB1",
                "branchId": "BR1",
                "productName": "Beans",
                "initialStock": "ten",
            }
        )
    )
    assert result.errors == ["initialStock must be a numeric value"]


def test_pattern_is_full_match() -> None:
    result = validate(
        create_command(
            {"type": "AddBranch", "franchiseId": "stb1", "branchId": "BR1x", "branchName": "Downtown"}
        )
    )
    assert result.errors == [
        f"franchiseId {PATTERN_ERROR}",
        f"branchId {PATTERN_ERROR}",
    ]


def test_franchise_name_max_length() -> None:
    result = validate(
        create_command({"type": "CreateFranchise", "franchiseId": "STB1", "franchiseName": "x" * 201})
    )
    assert result.errors == ["franchiseName must have no more than 200 characters"]


@pytest.mark.parametrize(
    "command, error",
    [
        (
            {"type": "UpdateFranchiseName", "franchiseId": "STB1", "newName": "x" * 9},
            "newName must have no more than 8 characters",
        ),
        (
            {"type": "AddBranch", "franchiseId": "STB1", "branchId": "BR1", "branchName": "x" * 9},
            "branchName must have no more than 8 characters",
        ),
        (
            {"type": "UpdateBranchName", "franchiseId": "STB1", "branchId": "BR1", "newName": "x" * 9},
            "newName must have no more than 8 characters",
        ),
        (
            {
                "type": "AddProductToBranch",
                "franchiseId": "STB1",
                "branchId": "BR1",
                "productName": "x" * 9,
                "initialStock": 1,
            },
            "productName must have no more than 8 characters",
        ),
        (
            {
                "type": "AddProductsToBranch",
                "franchiseId": "STB1",
                "branchId": "BR1",
                "products": [
                    {"productName": "Beans", "initialStock": 1},
                    {"productName": "x" * 9, "initialStock": 1},
                ],
            },
            "products[1].productName must have no more than 8 characters",
        ),
    ],
)
def test_every_name_is_length_bounded(command: dict, error: str) -> None:
    validator = CommandValidator(LedgerSettings(max_name_length=8))
    assert validator.validate(create_command(command)).errors == [error]


def test_positive_quantities() -> None:
    result = validate(
        create_command(
            {
                "type": "TransferProductBetweenBranches",
                "franchiseId": "STB1",
                "fromBranchId": "BR1",
                "toBranchId": "BR2",
                "productId": "P1",
                "quantity": 0,
            }
        )
    )
    assert result.errors == ["quantity must be a positive number"]


def test_negative_delta_is_numeric() -> None:
    result = validate(
        create_command(
            {
                "type": "UpdateProductStock",
                "franchiseId": "STB1",
                "branchId": "BR1",
                "productId": "P1",
                "quantityChange": "-15",
            }
        )
    )
    assert result.valid is True


def test_non_creation_needs_an_address() -> None:
    result = validate(
        create_command(
            {"type": "UpdateProductStock", "branchId": "BR1", "productId": "P1", "quantityChange": -15}
        )
    )
    assert result.errors == ["aggregateId or franchiseId is required"]


def test_aggregate_id_must_be_uuid() -> None:
    result = validate(
        create_command(
            {
                "type": "NotifyStockDepleted",
                "aggregateId": "not-a-uuid",
                "branchId": "BR1",
                "productId": "P1",
            }
        )
    )
    assert result.errors == ["aggregateId must be a valid UUID"]


def test_custom_identifier_pattern() -> None:
    validator = CommandValidator(LedgerSettings(identifier_pattern=r"[a-z]+"))
    result = validator.validate(
        create_command({"type": "RemoveFranchise", "franchiseId": "STB1"})
    )
    assert result.errors == ["franchiseId does not match the required pattern [a-z]+"]


# =============================================================================
# Typed conversion
# =============================================================================


def test_parse_returns_typed_command() -> None:
    command = CommandValidator().parse(
        create_command({"type": "CreateFranchise", "franchiseId": "STB1", "franchiseName": "Starbucks"})
    )
    assert isinstance(command, CreateFranchise)
    assert command.franchise_id == "STB1"
    assert command.franchise_name == "Starbucks"


def test_parse_coerces_numeric_strings() -> None:
    command = CommandValidator().parse(
        create_command(
            {
                "type": "UpdateProductStock",
                "franchiseId": "STB1",
                "branchId": "BR1",
                "productId": "P1",
                "quantityChange": "-3",
            }
        )
    )
    assert isinstance(command, UpdateProductStock)
    assert command.quantity_change == -3


def test_parse_raises_with_collected_errors() -> None:
    with pytest.raises(ValidationError) as exc_info:
        CommandValidator().parse(create_command({"type": "RemoveBranch", "franchiseId": "STB1"}))

    assert exc_info.value.errors == [
        "branchId is required",
        f"branchId {PATTERN_ERROR}",
    ]
    assert str(exc_info.value).startswith("Validation failed: branchId is required, ")
    assert exc_info.value.retryable is False


def test_parse_unknown_type() -> None:
    with pytest.raises(UnknownCommandTypeError):
        CommandValidator().parse(create_command({"type": "Nope"}))


def test_parse_checks_product_items() -> None:
    with pytest.raises(ValidationError) as exc_info:
        CommandValidator().parse(
            create_command(
                {
                    "type": "AddProductsToBranch",
                    "franchiseId": "STB1",
                    "branchId": "BR1",
                    "products": [{"productName": "Beans", "initialStock": 0}],
                }
            )
        )
    assert any("initialStock" in message for message in exc_info.value.errors)


def test_parse_product_batch() -> None:
    command = CommandValidator().parse(
        create_command(
            {
                "type": "AddProductsToBranch",
                "franchiseId": "STB1",
                "branchId": "BR1",
                "products": [
                    {"productId": "P1", "productName": "Beans", "initialStock": 5},
                    {"productName": "Milk", "initialStock": "2"},
                ],
            }
        )
    )
    assert isinstance(command, AddProductsToBranch)
    assert [p.product_id for p in command.products] == ["P1", None]
    assert command.products[1].initial_stock == 2


# =============================================================================
# Individual validators
# =============================================================================


@pytest.mark.parametrize("value", [None, "", "   ", []])
def test_required_rejects_blank(value) -> None:
    assert required("f")({"f": value}) == "f is required"


def test_required_accepts_zero() -> None:
    assert required("f")({"f": 0}) is None


@pytest.mark.parametrize("value,ok", [(5, True), ("-5", True), ("+5", True), ("5.0", False), (True, False), (None, False)])
def test_is_numeric(value, ok) -> None:
    assert (is_numeric("f")({"f": value}) is None) is ok


def test_is_positive() -> None:
    assert is_positive("f")({"f": 1}) is None
    assert is_positive("f")({"f": "-1"}) == "f must be a positive number"
    assert is_positive("f")({}) == "f must be a numeric value"


def test_is_uuid() -> None:
    assert is_uuid("f")({"f": "01908e9a-3b87-7000-8000-123456789abc"}) is None
    assert is_uuid("f")({"f": "P1"}) == "f must be a valid UUID"


def test_matches_pattern_uses_string_form() -> None:
    assert matches_pattern("f", r"\d+")({"f": 42}) is None


def test_length_validators() -> None:
    assert min_length("f", 3)({"f": "ab"}) == "f must have at least 3 characters"
    assert min_length("f", 3)({"f": "abc"}) is None
    assert max_length("f", 3)({"f": "abcd"}) == "f must have no more than 3 characters"
    assert max_length("f", 3)({}) is None


def test_is_in_range() -> None:
    assert is_in_range("f", 1, 10)({"f": 10}) is None
    assert is_in_range("f", 1, 10)({"f": 11}) == "f must be between 1 and 10"


def test_is_one_of() -> None:
    assert is_one_of("f", "a", "b")({"f": "a"}) is None
    assert is_one_of("f", "a", "b")({"f": "c"}) == "f must be one of a, b"


def test_item_max_length() -> None:
    check = item_max_length("products", "productName", 3)
    assert check({"products": [{"productName": "abc"}, "not an object"]}) is None
    assert check({"products": [{"productName": "abcd"}]}) == (
        "products[0].productName must have no more than 3 characters"
    )
    assert check({}) is None

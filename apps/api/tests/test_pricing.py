from __future__ import annotations

import pytest

from app.actions.pricing import (
    DEFAULT_ENRICHMENT_COST,
    OPERATION_COSTS,
    BillableOperation,
    UnknownEnrichmentCategoryError,
    enrichment_cost,
    normalize_categories,
    operation_cost,
)


@pytest.mark.parametrize(
    ("operation", "expected"),
    [
        (BillableOperation.SEARCH, 5),
        (BillableOperation.REVEAL_EMAIL, 2),
        (BillableOperation.GENERATE_MESSAGE, 3),
        (BillableOperation.FIND_EMAIL, 1),
        (BillableOperation.VERIFY_EMAIL, 1),
        (BillableOperation.SEND_EMAIL, 3),
        (BillableOperation.IMPORT, 10),
        (BillableOperation.EXPORT, 5),
    ],
)
def test_fixed_operation_costs(operation: BillableOperation, expected: int) -> None:
    assert operation_cost(operation) == expected


def test_every_fixed_cost_is_positive() -> None:
    assert all(cost > 0 for cost in OPERATION_COSTS.values())
    assert BillableOperation.ENRICH_CONTACT not in OPERATION_COSTS


def test_enrichment_has_no_fixed_cost() -> None:
    with pytest.raises(ValueError):
        operation_cost(BillableOperation.ENRICH_CONTACT)


def test_enrichment_cost_sums_requested_categories() -> None:
    assert enrichment_cost(["email"]) == 2
    assert enrichment_cost(["email", "phone"]) == 5
    assert enrichment_cost(["email", "phone", "social", "company"]) == 10


def test_enrichment_without_categories_costs_flat_default() -> None:
    assert enrichment_cost([]) == DEFAULT_ENRICHMENT_COST
    assert enrichment_cost(None) == DEFAULT_ENRICHMENT_COST


def test_enrichment_categories_are_counted_once() -> None:
    assert enrichment_cost(["email", "Email", " email "]) == 2
    assert normalize_categories(["Phone", "email", "phone", ""]) == ["phone", "email"]


def test_unknown_enrichment_category_is_rejected() -> None:
    with pytest.raises(UnknownEnrichmentCategoryError) as exc_info:
        enrichment_cost(["email", "fax", "pager"])
    assert exc_info.value.categories == ["fax", "pager"]

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum


class BillableOperation(StrEnum):
    SEARCH = "search"
    REVEAL_EMAIL = "reveal_email"
    GENERATE_MESSAGE = "generate_message"
    ENRICH_CONTACT = "enrich_contact"
    FIND_EMAIL = "find_email"
    VERIFY_EMAIL = "verify_email"
    SEND_EMAIL = "send_email"
    IMPORT = "import"
    EXPORT = "export"


# enrich_contact is priced per request, see enrichment_cost().
OPERATION_COSTS: dict[BillableOperation, int] = {
    BillableOperation.SEARCH: 5,
    BillableOperation.REVEAL_EMAIL: 2,
    BillableOperation.GENERATE_MESSAGE: 3,
    BillableOperation.FIND_EMAIL: 1,
    BillableOperation.VERIFY_EMAIL: 1,
    BillableOperation.SEND_EMAIL: 3,
    BillableOperation.IMPORT: 10,
    BillableOperation.EXPORT: 5,
}

ENRICHMENT_CATEGORY_COSTS: dict[str, int] = {
    "email": 2,
    "phone": 3,
    "social": 1,
    "company": 4,
}
DEFAULT_ENRICHMENT_COST = 5


class UnknownEnrichmentCategoryError(ValueError):
    def __init__(self, categories: list[str]) -> None:
        self.categories = categories
        super().__init__(f"unknown enrichment categories: {', '.join(categories)}")


def operation_cost(operation: BillableOperation) -> int:
    try:
        return OPERATION_COSTS[operation]
    except KeyError:
        raise ValueError(f"{operation} has no fixed cost") from None


def normalize_categories(categories: Iterable[str] | None) -> list[str]:
    """Lower-case, strip and de-duplicate categories, keeping request order."""
    if not categories:
        return []
    normalized = [item.strip().lower() for item in categories if item and item.strip()]
    return list(dict.fromkeys(normalized))


def enrichment_cost(categories: Iterable[str] | None) -> int:
    distinct = normalize_categories(categories)
    unknown = [item for item in distinct if item not in ENRICHMENT_CATEGORY_COSTS]
    if unknown:
        raise UnknownEnrichmentCategoryError(unknown)
    if not distinct:
        return DEFAULT_ENRICHMENT_COST
    return sum(ENRICHMENT_CATEGORY_COSTS[item] for item in distinct)

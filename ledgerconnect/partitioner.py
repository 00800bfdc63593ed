"""Category Partitioner - groups a customer's events into sub-ledgers.

Categories are discovered, not declared: the categories of a customer are
exactly the distinct ``category`` values among their events. Iteration order
is always lexicographic by category name, never insertion order.
"""

from typing import Dict, Iterable, List

from ledgerconnect.event_store import LedgerEvent, event_sort_key


def partition(events: Iterable[LedgerEvent]) -> Dict[str, List[LedgerEvent]]:
    """Group events by category.

    Args:
        events (Iterable[LedgerEvent]): Events of one customer, in any order

    Returns:
        Dict[str, List[LedgerEvent]]: Category -> events in chronological
            order. Keys are inserted in sorted order, so iterating the dict
            yields categories alphabetically.

    Example:
        ```python
        groups = partition(store.list_by_customer("c1"))
        for category, events in groups.items():
            print(category, len(events))
        ```
    """
    groups: Dict[str, List[LedgerEvent]] = {}
    for event in events:
        groups.setdefault(event.category, []).append(event)
    return {
        category: sorted(groups[category], key=event_sort_key)
        for category in sorted(groups)
    }


def list_categories(events: Iterable[LedgerEvent]) -> List[str]:
    """Sorted distinct categories referenced by ``events``."""
    return sorted({event.category for event in events})

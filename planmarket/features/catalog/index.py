"""
planmarket/features/catalog/index.py

Filtered, searchable, paginated listings over any repository exposing
`find_projected(criteria, offset, limit)`. Plans and products share this
index; each plugs in its own repository and item mapper. A batch mapper
(`to_items`) takes the whole page at once when per-item lookups would
repeat.
"""

import logging
import math
from typing import Callable, FrozenSet, Generic, List, Optional, Protocol, Tuple, TypeVar

from planmarket.core.errors import BadRequestError
from planmarket.features.catalog.models import CatalogCriteria, CatalogFilter, CatalogPage

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")
ItemT = TypeVar("ItemT")

ALL_FILTER_OPTIONS = frozenset({"category", "machine_type", "difficulty", "min_price", "max_price"})


class CatalogSource(Protocol[RecordT]):
    def find_projected(self, criteria: CatalogCriteria, offset: int, limit: int) -> Tuple[List[RecordT], int]:
        ...


class CatalogIndex(Generic[RecordT, ItemT]):
    def __init__(
        self,
        source: CatalogSource,
        to_item: Callable[[RecordT], ItemT],
        *,
        default_page_size: int,
        max_page_size: int,
        supported_filters: FrozenSet[str] = ALL_FILTER_OPTIONS,
        name: str = "catalog",
        to_items: Optional[Callable[[List[RecordT]], List[ItemT]]] = None,
    ):
        self._source = source
        self._to_item = to_item
        self._to_items = to_items
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._supported_filters = supported_filters
        self._name = name

    def _page_bounds(self, page: int, page_size: Optional[int]) -> Tuple[int, int]:
        size = self._default_page_size if page_size is None else page_size
        if page < 1:
            raise BadRequestError("page must be 1 or greater")
        if size < 1 or size > self._max_page_size:
            raise BadRequestError(f"limit must be between 1 and {self._max_page_size}")
        return page, size

    def _check_filter(self, catalog_filter: CatalogFilter) -> None:
        unsupported = catalog_filter.active_options() - self._supported_filters
        if unsupported:
            raise BadRequestError(f"Unsupported {self._name} filter: {', '.join(sorted(unsupported))}")
        for bound in (catalog_filter.min_price, catalog_filter.max_price):
            if bound is not None and bound < 0:
                raise BadRequestError("Price bounds must not be negative")
        if (
            catalog_filter.min_price is not None
            and catalog_filter.max_price is not None
            and catalog_filter.min_price > catalog_filter.max_price
        ):
            raise BadRequestError("min_price must not exceed max_price")

    def _map(self, records: List[RecordT]) -> List[ItemT]:
        if self._to_items is not None:
            return self._to_items(records)
        return [self._to_item(record) for record in records]

    def _run(self, criteria: CatalogCriteria, page: int, page_size: int) -> CatalogPage:
        records, total = self._source.find_projected(criteria, (page - 1) * page_size, page_size)
        return CatalogPage(
            items=self._map(records),
            total=total,
            total_pages=math.ceil(total / page_size),
            current_page=page,
        )

    def list(self, catalog_filter: Optional[CatalogFilter] = None, page: int = 1, page_size: Optional[int] = None) -> CatalogPage:
        """One page of records matching ``catalog_filter``, newest first."""
        page, page_size = self._page_bounds(page, page_size)
        catalog_filter = catalog_filter or CatalogFilter()
        self._check_filter(catalog_filter)
        result = self._run(CatalogCriteria(filter=catalog_filter), page, page_size)
        logger.debug(f"[{self._name}] list page={page} size={page_size} total={result.total}")
        return result

    def search(self, query: Optional[str], page: int = 1, page_size: Optional[int] = None) -> CatalogPage:
        """Case-insensitive substring search across the source's text fields."""
        if query is None or not query.strip():
            raise BadRequestError("Search query is required")
        page, page_size = self._page_bounds(page, page_size)
        result = self._run(CatalogCriteria(text=query.strip()), page, page_size)
        logger.debug(f"[{self._name}] search q={query!r} page={page} total={result.total}")
        return result

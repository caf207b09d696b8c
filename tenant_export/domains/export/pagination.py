"""Lazy iteration over paginated data-access calls."""

from typing import Callable, Generic, Iterator, TypeVar

from .entities import PageData, PageLink

T = TypeVar("T")


class PageDataIterable(Generic[T]):
    """
    Iterates every item behind a paginated fetch function.

    Pages are requested one at a time, starting from page 0, and the next
    page is only fetched once the current one is exhausted and reported
    ``has_next``.
    """

    def __init__(self, fetch_fn: Callable[[PageLink], PageData[T]], page_size: int) -> None:
        if page_size <= 0:
            raise ValueError("Page size must be positive")
        self._fetch_fn = fetch_fn
        self._page_size = page_size

    def __iter__(self) -> Iterator[T]:
        page_link = PageLink(page_size=self._page_size)
        while True:
            page = self._fetch_fn(page_link)
            yield from page.data
            if not page.has_next:
                return
            page_link = page_link.next_page_link()

"""
Unit tests for PageDataIterable.
"""
import pytest

from tenant_export.domains.export.entities import PageData, PageLink
from tenant_export.domains.export.pagination import PageDataIterable


def make_fetch(items, calls):
    def fetch(page_link: PageLink) -> PageData:
        calls.append(page_link)
        start = page_link.page * page_link.page_size
        end = start + page_link.page_size
        return PageData(data=items[start:end], has_next=end < len(items))
    return fetch


def test_iterates_all_pages_in_order():
    calls = []
    items = list(range(7))

    assert list(PageDataIterable(make_fetch(items, calls), page_size=3)) == items
    assert [link.page for link in calls] == [0, 1, 2]
    assert all(link.page_size == 3 for link in calls)


def test_empty_source_fetches_single_page():
    calls = []

    assert list(PageDataIterable(make_fetch([], calls), page_size=10)) == []
    assert len(calls) == 1


def test_pages_are_fetched_lazily():
    calls = []
    iterator = iter(PageDataIterable(make_fetch(list(range(5)), calls), page_size=2))

    assert next(iterator) == 0
    assert next(iterator) == 1
    assert len(calls) == 1
    assert next(iterator) == 2
    assert len(calls) == 2


@pytest.mark.parametrize("page_size", [0, -1])
def test_rejects_non_positive_page_size(page_size):
    with pytest.raises(ValueError):
        PageDataIterable(lambda link: PageData(data=[]), page_size=page_size)

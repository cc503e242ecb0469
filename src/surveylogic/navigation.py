"""
Page navigation over a SurveyStateStore.

The navigator is the store's navigation collaborator: skip and complete
triggers land here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from surveylogic.model import Page, Trigger
from surveylogic.validators import ValidationResult, validate_page

if TYPE_CHECKING:
    from surveylogic.store import SurveyStateStore

logger = logging.getLogger(__name__)


class SurveyNavigator:
    """
    Tracks the current page of one session.

    Example:
        store = SurveyStateStore(survey)
        nav = SurveyNavigator(store)
        if nav.can_go_next():
            nav.next_page()
    """

    def __init__(self, store: "SurveyStateStore"):
        self.store = store
        self.pages = store.survey.pages
        self.current_page_index = 0
        self.completed = False
        self.completed_by: Optional[Trigger] = None
        store.navigation = self

    @property
    def current_page(self) -> Optional[Page]:
        if not self.pages:
            return None
        return self.pages[self.current_page_index]

    def _page_visible(self, index: int) -> bool:
        return self.store.is_visible(self.pages[index].name)

    def next_page(self) -> Optional[Page]:
        """Advance past any hidden pages; stays put on the last page."""
        last = len(self.pages) - 1
        if self.current_page_index < last:
            self.current_page_index += 1
            while self.current_page_index < last and not self._page_visible(self.current_page_index):
                self.current_page_index += 1
        return self.current_page

    def previous_page(self) -> Optional[Page]:
        if self.current_page_index > 0:
            self.current_page_index -= 1
            while self.current_page_index > 0 and not self._page_visible(self.current_page_index):
                self.current_page_index -= 1
        return self.current_page

    def has_visible_pages_after_current(self) -> bool:
        return any(self._page_visible(i) for i in range(self.current_page_index + 1, len(self.pages)))

    def validate_current_page(self) -> ValidationResult:
        page = self.current_page
        if page is None:
            return ValidationResult()
        return validate_page(self.store, page)

    def can_go_next(self) -> bool:
        """Hidden pages always pass; visible ones must validate."""
        page = self.current_page
        if page is None or not self.store.is_visible(page.name):
            return True
        return self.validate_current_page().is_valid

    def go_to(self, target: str) -> bool:
        """Jump to the page named ``target`` or the page holding that question."""
        for index, page in enumerate(self.pages):
            if page.name == target:
                self.current_page_index = index
                return True
        page = self.store.survey.page_of(target)
        if page is None:
            logger.warning("Cannot navigate to unknown page or question %r", target)
            return False
        self.current_page_index = self.pages.index(page)
        return True

    def on_skip(self, target: Optional[str], trigger: Optional[Trigger] = None) -> None:
        if target:
            self.go_to(target)

    def on_complete(self, trigger: Optional[Trigger] = None) -> None:
        self.completed = True
        self.completed_by = trigger

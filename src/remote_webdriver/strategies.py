"""Locator strategy shortcuts shared by sessions, elements and commands."""

from __future__ import annotations

from typing import Any

from .models import Strategy


class FindStrategies:
    """Mixin adding ``find_by_*`` style shortcuts.

    The host class provides ``find``, ``find_all`` and ``wait_for_deleted``;
    every shortcut simply fixes the ``using`` argument. Because the shortcuts
    only delegate, they return whatever the host returns: a coroutine on
    :class:`~remote_webdriver.session.Session` and
    :class:`~remote_webdriver.element.Element`, a new command on
    :class:`~remote_webdriver.command.Command`.
    """

    def find(self, using: str, value: str) -> Any:  # pragma: no cover - provided by host
        raise NotImplementedError

    def find_all(self, using: str, value: str) -> Any:  # pragma: no cover - provided by host
        raise NotImplementedError

    def wait_for_deleted(self, using: str, value: str) -> Any:  # pragma: no cover - provided by host
        raise NotImplementedError

    def find_by_class_name(self, class_name: str) -> Any:
        return self.find(Strategy.CLASS_NAME.value, class_name)

    def find_by_css_selector(self, selector: str) -> Any:
        return self.find(Strategy.CSS_SELECTOR.value, selector)

    def find_by_id(self, element_id: str) -> Any:
        return self.find(Strategy.ID.value, element_id)

    def find_by_name(self, name: str) -> Any:
        return self.find(Strategy.NAME.value, name)

    def find_by_link_text(self, text: str) -> Any:
        return self.find(Strategy.LINK_TEXT.value, text)

    def find_by_partial_link_text(self, text: str) -> Any:
        return self.find(Strategy.PARTIAL_LINK_TEXT.value, text)

    def find_by_tag_name(self, tag_name: str) -> Any:
        return self.find(Strategy.TAG_NAME.value, tag_name)

    def find_by_xpath(self, path: str) -> Any:
        return self.find(Strategy.XPATH.value, path)

    def find_all_by_class_name(self, class_name: str) -> Any:
        return self.find_all(Strategy.CLASS_NAME.value, class_name)

    def find_all_by_css_selector(self, selector: str) -> Any:
        return self.find_all(Strategy.CSS_SELECTOR.value, selector)

    def find_all_by_name(self, name: str) -> Any:
        return self.find_all(Strategy.NAME.value, name)

    def find_all_by_link_text(self, text: str) -> Any:
        return self.find_all(Strategy.LINK_TEXT.value, text)

    def find_all_by_partial_link_text(self, text: str) -> Any:
        return self.find_all(Strategy.PARTIAL_LINK_TEXT.value, text)

    def find_all_by_tag_name(self, tag_name: str) -> Any:
        return self.find_all(Strategy.TAG_NAME.value, tag_name)

    def find_all_by_xpath(self, path: str) -> Any:
        return self.find_all(Strategy.XPATH.value, path)

    def wait_for_deleted_by_class_name(self, class_name: str) -> Any:
        return self.wait_for_deleted(Strategy.CLASS_NAME.value, class_name)

    def wait_for_deleted_by_css_selector(self, selector: str) -> Any:
        return self.wait_for_deleted(Strategy.CSS_SELECTOR.value, selector)

    def wait_for_deleted_by_id(self, element_id: str) -> Any:
        return self.wait_for_deleted(Strategy.ID.value, element_id)

    def wait_for_deleted_by_name(self, name: str) -> Any:
        return self.wait_for_deleted(Strategy.NAME.value, name)

    def wait_for_deleted_by_link_text(self, text: str) -> Any:
        return self.wait_for_deleted(Strategy.LINK_TEXT.value, text)

    def wait_for_deleted_by_partial_link_text(self, text: str) -> Any:
        return self.wait_for_deleted(Strategy.PARTIAL_LINK_TEXT.value, text)

    def wait_for_deleted_by_tag_name(self, tag_name: str) -> Any:
        return self.wait_for_deleted(Strategy.TAG_NAME.value, tag_name)

    def wait_for_deleted_by_xpath(self, path: str) -> Any:
        return self.wait_for_deleted(Strategy.XPATH.value, path)

"""Interface for presenting results to the user.

Keeps the command handler independent of the console library in use.
"""

import abc
from typing import Any, List

from ..models.brief import ContentBrief
from ..models.query import FanoutResult
from ..models.serp import Competitor


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays raw output (e.g., JSON) without decoration."""
        pass

    @abc.abstractmethod
    def display_competitors(self, keyword: str, competitors: List[Competitor]) -> None:
        pass

    @abc.abstractmethod
    def display_fanout(self, result: FanoutResult) -> None:
        pass

    @abc.abstractmethod
    def display_brief(self, brief: ContentBrief) -> None:
        pass

    @abc.abstractmethod
    def display_table(self, title: str, columns: List[str], rows: List[List[Any]]) -> None:
        pass

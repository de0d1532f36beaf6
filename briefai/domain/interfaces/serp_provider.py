"""Interface for search engine result page (SERP) providers."""

import abc
from typing import List, Optional

from ..models.common import Keyword
from ..models.serp import Competitor


class SerpProvider(abc.ABC):
    """Fetches the organic results competing for a keyword."""

    @abc.abstractmethod
    async def fetch_serp_results(
        self,
        keyword: Keyword,
        location_code: Optional[int] = None,
        language_code: Optional[str] = None,
    ) -> List[Competitor]:
        """Returns the top organic results for ``keyword``.

        Raises:
            TransientFailure: Network errors, rate limiting, server errors.
            PermanentFailure: Rejected credentials or request.
        """
        pass

"""paperpulse - arXiv paper tracker with a momentum-ranked feed.

Enriches papers with code links (ar5iv, GitHub), structured fields from a
language model and Papers-with-Code mappings, scores them, and serves a
cursor-paginated, optionally personalised feed.
"""

__version__ = "0.4.0"

from paperpulse.config import Settings
from paperpulse.models.paper import Paper

__all__ = ["Paper", "Settings", "__version__"]

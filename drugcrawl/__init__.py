"""drugcrawl: scrape the tabletki.ua drug catalogue and ATC classification."""

from drugcrawl.config import VERSION as __version__

__all__ = ["__version__"]

"""Drive report portals that have no API: log in per account, generate and download reports, scrape grids."""

__version__ = "0.1.0"

"""Plan scrapers: drive the fetch + extract pipeline over a day range."""

from .plan_scraper import scrape_plan, scrape_range, url_for_day, validate_range

__all__ = ["scrape_plan", "scrape_range", "url_for_day", "validate_range"]

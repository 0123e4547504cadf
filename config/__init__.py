"""Runtime configuration read from the environment."""

import os
from typing import List

from dotenv import load_dotenv

from .settings import DATABASE_PATH, DATABASE_URL, PRIME_RATE

load_dotenv()


class Config:
	DATABASE_PATH = DATABASE_PATH
	DATABASE_URL = DATABASE_URL

	LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
	LOG_FILE = os.getenv("LOG_FILE", "")

	SEARCH_CACHE_TTL = int(os.getenv("SEARCH_CACHE_TTL", "300") or "300")
	SEARCH_CACHE_MAX_ENTRIES = int(os.getenv("SEARCH_CACHE_MAX_ENTRIES", "500") or "500")
	DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "12") or "12")
	MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100") or "100")

	HEATMAP_DEFAULT_GRID = int(os.getenv("HEATMAP_DEFAULT_GRID", "15") or "15")
	FEED_PAGE_SIZE = int(os.getenv("FEED_PAGE_SIZE", "20") or "20")

	PRIME_RATE = PRIME_RATE

	@staticmethod
	def validate() -> List[str]:
		errors = []
		if not Config.DATABASE_URL:
			errors.append("DATABASE_URL is empty")
		if Config.LOG_LEVEL.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
			errors.append(f"LOG_LEVEL {Config.LOG_LEVEL!r} is not a logging level")
		if Config.SEARCH_CACHE_MAX_ENTRIES < 1:
			errors.append("SEARCH_CACHE_MAX_ENTRIES must be at least 1")
		if Config.MAX_PAGE_SIZE < 1:
			errors.append("MAX_PAGE_SIZE must be at least 1")
		if not 1 <= Config.DEFAULT_PAGE_SIZE <= Config.MAX_PAGE_SIZE:
			errors.append("DEFAULT_PAGE_SIZE must be between 1 and MAX_PAGE_SIZE")
		if not 5 <= Config.HEATMAP_DEFAULT_GRID <= 50:
			errors.append("HEATMAP_DEFAULT_GRID must be between 5 and 50")
		if Config.PRIME_RATE <= 0:
			errors.append("PRIME_RATE must be positive")
		return errors


__all__ = ["Config"]

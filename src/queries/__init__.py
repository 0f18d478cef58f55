"""Search query generation for collectors."""

from .search_query_generator import TRENDING_TIMEFRAMES, SearchQueryGenerator

__all__ = ["SearchQueryGenerator", "TRENDING_TIMEFRAMES"]

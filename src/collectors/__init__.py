"""
Collector package.

Concrete adapters (feeds, search APIs, GitHub) live with the caller; this
package only provides the shared base class and the request budget.
"""

from .base_collector import BaseCollector
from .rate_limit_utils import RateLimiter

__all__ = ["BaseCollector", "RateLimiter"]

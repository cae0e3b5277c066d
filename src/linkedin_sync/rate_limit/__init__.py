# ABOUTME: Rate limiting package for enforcing per-category request budgets.
# ABOUTME: Exports RateLimiter service, its display helper and RateLimitExceeded.

from linkedin_sync.rate_limit.display import RateLimitDisplay
from linkedin_sync.rate_limit.exceptions import RateLimitExceeded
from linkedin_sync.rate_limit.service import RateLimiter, RemainingBudget, ResetIn

__all__ = ["RateLimiter", "RateLimitExceeded", "RateLimitDisplay", "RemainingBudget", "ResetIn"]

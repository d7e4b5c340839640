"""Bill categories: matching and management."""

from bill_assistant.categories.keywords import (
    CATEGORY_KEYWORDS,
    DEFAULT_SYSTEM_CATEGORIES,
)
from bill_assistant.categories.matcher import (
    CategoryMatcher,
    score_category,
    tokenize,
)
from bill_assistant.categories.service import CategoryService

__all__ = [
    "CATEGORY_KEYWORDS",
    "CategoryMatcher",
    "CategoryService",
    "DEFAULT_SYSTEM_CATEGORIES",
    "score_category",
    "tokenize",
]

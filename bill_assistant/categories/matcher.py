"""
Category Matching Engine

Turns the free-text category label picked by the model ("外卖订单",
"Coffee", "交通 打车") into one of the caller's categories.

Tiers, first hit wins:

1. EXACT: the trimmed label equals a category name, ignoring case
2. SCORED: split the label into tokens and score every category;
   each token earns the strongest rule that applies to it:
       100  token equals the name
        50  name contains the token
        20  description contains the token
        30  a keyword of the category occurs in the token
   Highest total wins, ties go to the category that comes first in
   (sort_order, id) order, and a best score of 0 means no match

A category name containing a separator (such as "水电、燃气") can only
match through the exact tier, which sees the label before tokenizing.

No match is a normal outcome: a bill's category is optional.

Only enabled categories the caller can see take part: system categories
plus the caller's own.
"""

import re
from typing import Optional

import structlog

from bill_assistant.categories.keywords import keywords_for
from bill_assistant.models.bill import Category, TransactionType
from bill_assistant.services.storage import CategoryStorageInterface

logger = structlog.get_logger(__name__)

SCORE_EXACT_MATCH = 100
SCORE_CONTAINS_MATCH = 50
SCORE_DESCRIPTION_MATCH = 20
SCORE_KEYWORD_MATCH = 30

_TOKEN_SEPARATORS = re.compile(r"[\s,，、;；:：。]+")


def tokenize(label: str) -> list[str]:
    """Lower-cased, non-empty tokens of a label."""
    return [t.lower() for t in _TOKEN_SEPARATORS.split(label) if t.strip()]


def score_category(category: Category, tokens: list[str]) -> int:
    name = category.name.lower()
    description = (category.description or "").lower()
    keywords = keywords_for(category.name)

    score = 0
    for token in tokens:
        if token == name:
            score += SCORE_EXACT_MATCH
        elif token in name:
            score += SCORE_CONTAINS_MATCH
        elif token in description:
            score += SCORE_DESCRIPTION_MATCH
        elif any(keyword in token for keyword in keywords):
            score += SCORE_KEYWORD_MATCH
    return score


class CategoryMatcher:

    def __init__(self, category_storage: CategoryStorageInterface):
        self._categories = category_storage

    async def available_category_names(self, owner_id: Optional[int]) -> list[str]:
        """Names of the enabled categories the owner can pick from."""
        categories = await self._categories.list_categories(owner_id)
        return [c.name for c in categories]

    async def find_category_id_by_name(
        self,
        name: str,
        owner_id: Optional[int],
    ) -> Optional[int]:
        """Exact name lookup, ignoring case. Several hits resolve to the lowest id."""
        wanted = name.strip().casefold()
        hits = [
            c.id for c in await self._categories.list_categories(owner_id)
            if c.name.strip().casefold() == wanted
        ]
        return min(hits) if hits else None

    async def rank_categories(
        self,
        tokens: list[str],
        owner_id: Optional[int],
    ) -> list[tuple[Category, int]]:
        """Categories with a positive score, best first (stable on ties)."""
        scored = [
            (category, score_category(category, tokens))
            for category in await self._categories.list_categories(owner_id)
        ]
        ranked = [pair for pair in scored if pair[1] > 0]
        ranked.sort(key=lambda pair: pair[1], reverse=True)
        return ranked

    async def match_category(
        self,
        label: Optional[str],
        direction: Optional[TransactionType] = None,
        owner_id: Optional[int] = None,
    ) -> Optional[int]:
        """
        Resolve a label to a category id.

        Returns:
            The category id, or None if nothing matches
        """
        if not label or not label.strip():
            return None

        log = logger.bind(label=label, owner_id=owner_id, direction=direction)

        exact = await self.find_category_id_by_name(label.strip(), owner_id)
        if exact is not None:
            log.debug("category_exact_match", category_id=exact)
            return exact

        ranked = await self.rank_categories(tokenize(label), owner_id)
        if ranked:
            best, score = ranked[0]
            log.debug("category_scored_match", category_id=best.id, score=score)
            return best.id

        # No second exact lookup on the raw label: the exact tier already
        # compared the whole untokenized label, and normalizing both sides
        # means a raw comparison cannot match anything it missed.
        log.info("category_unmatched")
        return None

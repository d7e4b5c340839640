"""
Tests for the category matching engine.

System categories are seeded in display order, so their ids are
1 工资收入, 2 奖金, 3 投资收益, 4 其它收入, 5 餐饮, 6 交通, 7 购物,
8 娱乐, 9 医疗, 10 教育, 11 住房, 12 其他.
"""

import pytest

from bill_assistant.categories import score_category, tokenize
from bill_assistant.models.bill import Category, TransactionType

FOOD = 5
TRANSPORT = 6


class TestTokenize:

    def test_splits_on_ascii_and_cjk_separators(self):
        assert tokenize("交通，打车;地铁、公交：早高峰。") == ["交通", "打车", "地铁", "公交", "早高峰"]

    def test_lowercases_and_drops_blanks(self):
        assert tokenize("  Coffee   Shop ") == ["coffee", "shop"]

    def test_empty_label(self):
        assert tokenize("") == []


class TestScoreCategory:

    def test_each_token_earns_its_strongest_rule(self):
        """Test a token matching the name scores 100, not 100 + keyword."""
        category = Category(id=6, name="交通", description="通勤与出行")
        # 交通 → name (100), 出行 → description (20), 打车 → keyword (30)
        assert score_category(category, ["交通", "出行", "打车"]) == 150

    def test_name_contains_token(self):
        category = Category(id=20, owner_id=1, name="宠物用品")
        assert score_category(category, ["宠物"]) == 50

    def test_no_rule_applies(self):
        category = Category(id=20, owner_id=1, name="宠物用品")
        assert score_category(category, ["coffee"]) == 0


class TestCategoryMatcher:

    @pytest.mark.asyncio
    async def test_exact_name(self, seeded_storage, matcher):
        """Test a label equal to a category name matches directly."""
        assert await matcher.match_category("餐饮", TransactionType.EXPENSE, 1) == FOOD

    @pytest.mark.asyncio
    async def test_exact_name_ignores_surrounding_whitespace(self, seeded_storage, matcher):
        assert await matcher.match_category("  交通 ", TransactionType.EXPENSE, 1) == TRANSPORT

    @pytest.mark.asyncio
    async def test_exact_name_ignores_case(self, seeded_storage, matcher, category_service):
        private = await category_service.create_category(1, "Taxi")
        assert await matcher.match_category(" TAXI ", TransactionType.EXPENSE, 1) == private.id

    @pytest.mark.asyncio
    async def test_keyword_match(self, seeded_storage, matcher):
        """Test '外卖订单' lands in 餐饮 through the keyword table."""
        assert await matcher.match_category("外卖订单", TransactionType.EXPENSE, 1) == FOOD

    @pytest.mark.asyncio
    async def test_scores_add_up_across_tokens(self, seeded_storage, matcher):
        assert await matcher.match_category("打车 地铁", TransactionType.EXPENSE, 1) == TRANSPORT

    @pytest.mark.asyncio
    async def test_no_match_returns_none(self, seeded_storage, matcher):
        """Test an unrelated label stays uncategorized."""
        assert await matcher.match_category("Coffee", TransactionType.EXPENSE, 1) is None

    @pytest.mark.asyncio
    async def test_empty_label(self, seeded_storage, matcher):
        assert await matcher.match_category("", TransactionType.EXPENSE, 1) is None
        assert await matcher.match_category("   ", TransactionType.EXPENSE, 1) is None
        assert await matcher.match_category(None, TransactionType.EXPENSE, 1) is None

    @pytest.mark.asyncio
    async def test_private_category_only_for_its_owner(
        self, seeded_storage, matcher, category_service
    ):
        """Test one user's category is invisible to another."""
        private = await category_service.create_category(1, "猫粮")

        assert await matcher.match_category("猫粮", TransactionType.EXPENSE, 1) == private.id
        assert await matcher.match_category("猫粮", TransactionType.EXPENSE, 2) is None

    @pytest.mark.asyncio
    async def test_disabled_category_skipped(self, seeded_storage, matcher, category_service):
        private = await category_service.create_category(1, "宠物")
        await category_service.set_enabled(private.id, 1, False)

        assert await matcher.match_category("宠物", TransactionType.EXPENSE, 1) is None
        assert "宠物" not in await matcher.available_category_names(1)

    @pytest.mark.asyncio
    async def test_exact_duplicates_resolve_to_lowest_id(
        self, seeded_storage, matcher, category_service
    ):
        """Test a private namesake of a system category loses to it."""
        await category_service.create_category(1, "餐饮", sort_order=0)
        assert await matcher.match_category("餐饮", TransactionType.EXPENSE, 1) == FOOD

    @pytest.mark.asyncio
    async def test_score_tie_goes_to_natural_order(
        self, seeded_storage, matcher, category_service
    ):
        """Test equal scores are won by the lower sort order."""
        later = await category_service.create_category(1, "咖啡豆", sort_order=200)
        earlier = await category_service.create_category(1, "咖啡机", sort_order=100)

        # Both names contain the token (50); 餐饮 only gets keyword credit (30)
        matched = await matcher.match_category("咖啡", TransactionType.EXPENSE, 1)
        assert matched == earlier.id
        assert matched != later.id

    @pytest.mark.asyncio
    async def test_repeated_matching_is_stable(self, seeded_storage, matcher, category_service):
        """Test the same label resolves to the same category every time."""
        await category_service.create_category(1, "咖啡豆", sort_order=200)
        await category_service.create_category(1, "咖啡机", sort_order=100)

        for label in ("咖啡", "餐饮", "打车回家", "Coffee"):
            first = await matcher.match_category(label, TransactionType.EXPENSE, 1)
            second = await matcher.match_category(label, TransactionType.EXPENSE, 1)
            assert first == second

    @pytest.mark.asyncio
    async def test_punctuated_label_matches_by_token(self, seeded_storage, matcher):
        assert await matcher.match_category("交通，", TransactionType.EXPENSE, 1) == TRANSPORT

    @pytest.mark.asyncio
    async def test_name_with_separator_matches_whole(
        self, seeded_storage, matcher, category_service
    ):
        utilities = await category_service.create_category(1, "水电、燃气")
        assert await matcher.match_category("水电、燃气", TransactionType.EXPENSE, 1) == utilities.id

    @pytest.mark.asyncio
    async def test_available_names_in_display_order(self, seeded_storage, matcher):
        names = await matcher.available_category_names(1)
        assert names[0] == "工资收入"
        assert names[-1] == "其他"
        assert len(names) == 12

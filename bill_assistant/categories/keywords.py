"""
Static category vocabulary.

CATEGORY_KEYWORDS maps a category name to words that suggest it. Only
categories whose name appears here get keyword credit during matching;
a user's private category is matched on its name and description alone.
"""

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "工资收入": ("工资", "薪资", "薪水", "月薪", "年薪", "salary"),
    "奖金": ("奖金", "年终奖", "绩效奖", "提成", "bonus"),
    "投资收益": ("投资", "股票", "基金", "理财", "分红", "利息", "收益"),
    "餐饮": ("餐饮", "美食", "吃饭", "外卖", "餐厅", "咖啡", "奶茶", "食物", "饭店"),
    "交通": ("交通", "出行", "打车", "地铁", "公交", "火车", "飞机", "汽车", "加油", "停车"),
    "购物": ("购物", "商场", "超市", "淘宝", "京东", "服装", "化妆品", "电子产品"),
    "娱乐": ("娱乐", "电影", "游戏", "KTV", "旅游", "健身", "运动"),
    "医疗": ("医疗", "医院", "药店", "看病", "体检", "药品", "保健"),
    "教育": ("教育", "培训", "学费", "书籍", "课程", "学习"),
    "住房": ("住房", "房租", "物业", "装修", "家具", "水电费", "燃气费"),
}

# (name, code, description) seeded as system categories, in display order
DEFAULT_SYSTEM_CATEGORIES: tuple[tuple[str, str, str], ...] = (
    ("工资收入", "SALARY", "每月工资薪酬"),
    ("奖金", "BONUS", "年终奖与绩效提成"),
    ("投资收益", "INVESTMENT", "股票基金理财收入"),
    ("其它收入", "OTHER_INCOME", "其它来源的收入"),
    ("餐饮", "FOOD", "日常三餐与饮品"),
    ("交通", "TRANSPORT", "通勤与出行"),
    ("购物", "SHOPPING", "日用品与网购"),
    ("娱乐", "ENTERTAINMENT", "休闲与文体活动"),
    ("医疗", "MEDICAL", "看病买药"),
    ("教育", "EDUCATION", "学习与培训"),
    ("住房", "HOUSING", "房租物业与水电燃气"),
    ("其他", "OTHER", "无法归类的支出"),
)


def keywords_for(category_name: str) -> tuple[str, ...]:
    """Lower-cased keywords for a category name, empty if it has none."""
    return tuple(k.lower() for k in CATEGORY_KEYWORDS.get(category_name, ()))

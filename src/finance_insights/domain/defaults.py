from finance_insights.models import UNCATEGORIZED_ID, Budget, Category

UNCATEGORIZED_CATEGORY = Category(
    id=UNCATEGORIZED_ID,
    name="Uncategorized",
    color="#a0aec0",
    icon="question",
    description="Transactions that could not be automatically categorized.",
)

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    UNCATEGORIZED_CATEGORY,
    Category(id="cat-groceries", name="Groceries", color="#48bb78", icon="shoppingCart",
             description="Food at home, essentials."),
    Category(id="cat-transport", name="Transport", color="#4299e1", icon="car",
             description="Fuel, car maintenance, public transport, ride share."),
    Category(id="cat-dining", name="Dining", color="#ed8936", icon="dining",
             description="Eating out, takeaway, cafes."),
    Category(id="cat-subscriptions", name="Subscriptions", color="#9f7aea", icon="subscription",
             description="Streaming services, apps, memberships."),
    Category(id="cat-income", name="Income", color="#38b2ac", icon="income",
             description="Treated as total inflow, used for percentage calculations."),
    Category(id="cat-shopping", name="Shopping", color="#ed64a6", icon="shoppingBag",
             description="Clothing, household goods, personal items."),
    Category(id="cat-housing-utilities", name="Housing and Utilities", color="#ecc94b", icon="home",
             description="Rent or mortgage, rates, electricity, gas, water."),
    Category(id="cat-education-childcare", name="Education and Childcare", color="#718096", icon="education",
             description="School fees, daycare, extracurriculars."),
    Category(id="cat-savings-investments", name="Savings and Investments", color="#2b6cb0", icon="savings",
             description="Emergency fund, investing, extra super, offset."),
    Category(id="cat-health", name="Health", color="#f56565", icon="health",
             description="GP visits, specialists, pharmacy, health insurance gap payments."),
    Category(id="cat-entertainment", name="Entertainment", color="#667eea", icon="entertainment",
             description="Movies, outings, hobbies, sports, events."),
    Category(id="cat-alcohol", name="Alcohol", color="#805AD5", icon="dining",
             description="Bars, bottle shops."),
)

# (budget id, category id, recommended min %, recommended max %)
_BUDGET_RANGES: tuple[tuple[str, str, float | None, float | None], ...] = (
    ("budget-housing", "cat-housing-utilities", 25, 35),
    ("budget-groceries", "cat-groceries", 10, 15),
    ("budget-dining", "cat-dining", 3, 8),
    ("budget-transport", "cat-transport", 10, 15),
    ("budget-health", "cat-health", 3, 6),
    ("budget-education", "cat-education-childcare", 0, 10),
    ("budget-entertainment", "cat-entertainment", 2, 5),
    ("budget-shopping", "cat-shopping", 3, 10),
    ("budget-subscriptions", "cat-subscriptions", 1, 3),
    ("budget-alcohol", "cat-alcohol", 1, 3),
    ("budget-savings", "cat-savings-investments", 10, 20),
    ("budget-income", "cat-income", None, None),
)

DEFAULT_BUDGETS: tuple[Budget, ...] = tuple(
    Budget(
        id=budget_id,
        category_id=category_id,
        recommended_min_percent=min_percent,
        recommended_max_percent=max_percent,
    )
    for budget_id, category_id, min_percent, max_percent in _BUDGET_RANGES
)

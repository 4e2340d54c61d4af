"""Importing this package registers every table on db.metadata."""

from mealsphere.app.models.account_transaction import AccountTransaction
from mealsphere.app.models.auto_meal_settings import AutoMealSettings
from mealsphere.app.models.extra_expense import ExtraExpense
from mealsphere.app.models.group import Group
from mealsphere.app.models.guest_meal import GuestMeal
from mealsphere.app.models.meal import Meal
from mealsphere.app.models.meal_settings import MealSettings
from mealsphere.app.models.membership import Membership
from mealsphere.app.models.payment import Payment
from mealsphere.app.models.period import Period
from mealsphere.app.models.refresh_token import RefreshToken
from mealsphere.app.models.shopping_item import ShoppingItem
from mealsphere.app.models.transaction_history import TransactionHistory
from mealsphere.app.models.user import User

__all__ = [
    "AccountTransaction",
    "AutoMealSettings",
    "ExtraExpense",
    "Group",
    "GuestMeal",
    "Meal",
    "MealSettings",
    "Membership",
    "Payment",
    "Period",
    "RefreshToken",
    "ShoppingItem",
    "TransactionHistory",
    "User",
]

"""Shopping list derivation from a generated meal plan."""

from __future__ import annotations

import logging

from app.ai.pipeline.contracts import INGREDIENT_CATEGORIES, MealResult, ShoppingItem, ShoppingListResult

logger = logging.getLogger(__name__)

# Totals up to 10% over budget still count as on budget.
BUDGET_TOLERANCE = 1.1


def build_shopping_list(meals: MealResult, *, weekly_budget: float) -> ShoppingListResult:
  """Aggregate every ingredient of the week by category and name."""
  try:
    merged: dict[tuple[str, str, str], ShoppingItem] = {}
    for day_meals in meals.weekly_meal_plan.values():
      for meal in day_meals.values():
        for ingredient in meal.ingredients:
          key = (ingredient.category, ingredient.name.strip().lower(), ingredient.unit.strip().lower())
          existing = merged.get(key)
          if existing is None:
            merged[key] = ShoppingItem(name=ingredient.name.strip(), quantity=ingredient.quantity, unit=ingredient.unit, category=ingredient.category, estimated_price=ingredient.price)
          else:
            merged[key] = existing.model_copy(update={"quantity": existing.quantity + ingredient.quantity, "estimated_price": existing.estimated_price + ingredient.price})

    items = sorted(merged.values(), key=lambda item: (INGREDIENT_CATEGORIES.index(item.category), item.name.lower()))
    items = [item.model_copy(update={"quantity": round(item.quantity, 2), "estimated_price": round(item.estimated_price, 2)}) for item in items]
    categories = {category: [item for item in items if item.category == category] for category in INGREDIENT_CATEGORIES}
    total_cost = round(sum(item.estimated_price for item in items), 2)
    budget_status = "under_budget" if total_cost <= weekly_budget * BUDGET_TOLERANCE else "over_budget"
    return ShoppingListResult(categories=categories, items=items, total_cost=total_cost, weekly_budget=weekly_budget, budget_status=budget_status)
  except (ValueError, TypeError) as exc:
    logger.error("Shopping list derivation failed: %s", exc, exc_info=True)
    return ShoppingListResult(status="error", message=f"Failed to generate shopping list: {exc}", weekly_budget=weekly_budget, budget_status="unknown")

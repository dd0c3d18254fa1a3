"""ORM models for users, generation records, plans and notifications."""

from .notifications import InAppNotification
from .plans import FitnessPlan, PlanGenerationStatus
from .sql import NutritionGoal, SystemSetting, TrainerClient, User

__all__ = ["FitnessPlan", "InAppNotification", "NutritionGoal", "PlanGenerationStatus", "SystemSetting", "TrainerClient", "User"]

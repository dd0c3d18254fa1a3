from . import admin, plan_generation

__all__ = ["admin", "plan_generation"]

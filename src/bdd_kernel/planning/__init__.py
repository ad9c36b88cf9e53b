from .planner import TestCase, TestPlanner, TestStep

__all__ = ["TestCase", "TestPlanner", "TestStep"]

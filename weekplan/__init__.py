"""weekplan - weekly task planner with guest and account storage."""

__version__ = "0.1.0"

"""Operation tracking."""

from .store import OperationStore, get_overall_progress

__all__ = ["OperationStore", "get_overall_progress"]

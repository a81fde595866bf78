"""Read-only selectors for the society kernel."""

from society_kernel.selectors.base import BaseSelector
from society_kernel.selectors.record_selector import CorrectionFilter, RecordSelector

__all__ = ["BaseSelector", "CorrectionFilter", "RecordSelector"]

"""In-process numerology engine."""

from library_service.services.numerology.calculator import compute_profile
from library_service.services.numerology.constants import NumerologySystem
from library_service.services.numerology.models import NumerologyProfile


__all__ = ["NumerologyProfile", "NumerologySystem", "compute_profile"]

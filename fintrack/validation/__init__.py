"""Form validation package."""

from fintrack.validation.validator import FormValidator

__all__ = ["FormValidator"]

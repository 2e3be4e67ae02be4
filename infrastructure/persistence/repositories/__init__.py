from .box import BoxRepository, SadaqahRepository
from .currency import CurrencyRepository
from .rate_attempt import RateAttemptRepository

__all__ = [
    'BoxRepository',
    'CurrencyRepository',
    'RateAttemptRepository',
    'SadaqahRepository',
]

from .config import config
from .db import db, interface_scope
from .logging_setup import logger, get_logger
from .exceptions import (
    IntelligenceError, ForecastError, AdjustmentError, SuggestionError, NotFoundError
)

__all__ = [
    'config',
    'db',
    'interface_scope',
    'logger',
    'get_logger',
    'IntelligenceError',
    'ForecastError',
    'AdjustmentError',
    'SuggestionError',
    'NotFoundError'
]

"""
Shared helpers for tests that need a real database: an in-memory SQLite
engine with every table created, wrapped in SQLAlchemyInterface.
"""
from unittest.mock import patch, PropertyMock

from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from inventory_intelligence.config import Config
from inventory_intelligence.db.interface import SQLAlchemyInterface
from inventory_intelligence.models import Base

INTELLIGENCE_SETTINGS = {
    'critical_days': 3,
    'warning_days': 7,
    'planned_days': 14,
    'default_safety_stock_days': 14,
    'target_coverage_days': 30,
    'include_in_transit': True,
    'default_transit_days': 7,
    'default_lead_time_days': 30,
    'replenishment_location_types': [],
}

FORECAST_SETTINGS = {
    'history_days': 90,
    'recent_window': 30,
    'smoothing_alpha': 0.3,
    'moving_average_window': 7,
    'min_data_points_for_trend': 60,
}

def make_sqlite_interface():
    """Create an in-memory database and return (interface, session)."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    session = Session(engine)
    return SQLAlchemyInterface(session), session

def patch_settings(intelligence=None, forecast=None):
    """Patch the INTELLIGENCE and FORECASTING config sections.

    Returns:
        List of started patchers; stop them in tearDown
    """
    patchers = [
        patch.object(
            Config, 'intelligence_config', new_callable=PropertyMock,
            return_value=dict(INTELLIGENCE_SETTINGS, **(intelligence or {}))
        ),
        patch.object(
            Config, 'forecast_config', new_callable=PropertyMock,
            return_value=dict(FORECAST_SETTINGS, **(forecast or {}))
        ),
    ]
    for patcher in patchers:
        patcher.start()
    return patchers

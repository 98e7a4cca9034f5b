# inventory_intelligence/models.py
import enum
import uuid

from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey, Text, JSON,
    Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func, expression

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


class SalesSource(enum.Enum):
    MANUAL = 'manual'
    IMPORTED = 'imported'
    AMAZON_API = 'amazon-api'


class ForecastConfidence(enum.Enum):
    """Confidence tier of a calculated forecast.

    Values:
        HIGH: long history, low error and a stable recent window
        MEDIUM: at least a month of history with moderate error
        LOW: anything else
    """
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'

    def __str__(self):
        return self.value


class AdjustmentEffect(enum.Enum):
    EXCLUDE = 'exclude'      # demand is zero inside the window
    MULTIPLY = 'multiply'    # demand is scaled by the adjustment multiplier


class ThresholdType(enum.Enum):
    UNITS = 'units'
    DAYS_OF_COVER = 'days-of-cover'


class SuggestionType(enum.Enum):
    TRANSFER = 'transfer'
    PURCHASE_ORDER = 'purchase-order'


class SuggestionUrgency(enum.Enum):
    """Urgency tier of a replenishment suggestion, most urgent first."""
    CRITICAL = 'critical'
    WARNING = 'warning'
    PLANNED = 'planned'
    MONITOR = 'monitor'

    def __str__(self):
        return self.value


class SuggestionStatus(enum.Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    DISMISSED = 'dismissed'
    SNOOZED = 'snoozed'

    @classmethod
    def from_string(cls, value: str) -> 'SuggestionStatus':
        """Create a SuggestionStatus from its string value.

        Raises:
            ValueError if the string value is not valid
        """
        try:
            return cls(value)
        except ValueError:
            valid = ', '.join(s.value for s in cls)
            raise ValueError(f"Invalid suggestion status: {value}. Valid values are: {valid}")


class Supplier(Base):
    __tablename__ = 'suppliers'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    lead_time_days = Column(Integer)
    min_order_qty = Column(Integer, default=1)

    products = relationship("Product", back_populates="supplier")


class Product(Base):
    __tablename__ = 'products'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    sku = Column(String(100), nullable=False)
    name = Column(String(200), nullable=False)
    supplier_id = Column(String(36), ForeignKey('suppliers.id'))

    supplier = relationship("Supplier", back_populates="products")


class Location(Base):
    __tablename__ = 'locations'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    type = Column(String(50))  # e.g. warehouse, amazon-fba, 3pl


class SalesHistory(Base):
    __tablename__ = 'sales_history'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    location_id = Column(String(36), ForeignKey('locations.id'), nullable=False)
    date = Column(Date, nullable=False)
    units_sold = Column(Integer, nullable=False, default=0)
    revenue = Column(Float, default=0.0)
    currency = Column(String(3), default='USD')
    source = Column(String(20), default=SalesSource.MANUAL.value)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('product_id', 'location_id', 'date', name='uq_sales_history_pair_date'),
        Index('idx_sales_history_date', 'date'),
    )


class SalesForecast(Base):
    """Calculated daily demand rate for one (product, location) pair."""
    __tablename__ = 'sales_forecasts'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    location_id = Column(String(36), ForeignKey('locations.id'), nullable=False)

    # Denormalized for display
    sku = Column(String(100), default='')
    product_name = Column(String(200), default='')
    location_name = Column(String(200), default='')

    daily_rate = Column(Float, nullable=False, default=0.0)
    confidence = Column(String(10), default=ForecastConfidence.LOW.value)
    accuracy_mape = Column(Float)
    manual_override = Column(Float)
    is_enabled = Column(Boolean, nullable=False, default=True, server_default=expression.true())
    seasonal_multipliers = Column(JSON)  # 12 floats, index 0 = January
    trend_rate = Column(Float, default=0.0)

    last_calculated_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('product_id', 'location_id', name='uq_sales_forecasts_pair'),
    )


class AccountForecastAdjustment(Base):
    __tablename__ = 'account_forecast_adjustments'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    effect = Column(String(10), nullable=False)
    multiplier = Column(Float)  # required when effect is multiply
    is_recurring = Column(Boolean, default=False)
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())

    product_adjustments = relationship("ProductForecastAdjustment", back_populates="account_adjustment")


class ProductForecastAdjustment(Base):
    __tablename__ = 'product_forecast_adjustments'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    account_adjustment_id = Column(String(36), ForeignKey('account_forecast_adjustments.id'))
    name = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    effect = Column(String(10), nullable=False)
    multiplier = Column(Float)
    is_recurring = Column(Boolean, default=False)
    is_opted_out = Column(Boolean, default=False)
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())

    account_adjustment = relationship("AccountForecastAdjustment", back_populates="product_adjustments")

    __table_args__ = (
        Index('idx_product_forecast_adjustments_product', 'product_id'),
    )


class SafetyStockRule(Base):
    __tablename__ = 'safety_stock_rules'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    location_id = Column(String(36), ForeignKey('locations.id'), nullable=False)
    threshold_type = Column(String(20), nullable=False, default=ThresholdType.DAYS_OF_COVER.value)
    threshold_value = Column(Float, nullable=False)
    seasonal_multipliers = Column(JSON)  # empty or 12 floats
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        Index('idx_safety_stock_rules_pair', 'product_id', 'location_id'),
    )


class ShippingRoute(Base):
    __tablename__ = 'shipping_routes'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    from_location_id = Column(String(36), ForeignKey('locations.id'), nullable=False)
    to_location_id = Column(String(36), ForeignKey('locations.id'), nullable=False)
    method = Column(String(50))
    transit_days_typical = Column(Integer)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)


class InventoryBatch(Base):
    __tablename__ = 'inventory_batches'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    location_id = Column(String(36), ForeignKey('locations.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)


class Transfer(Base):
    __tablename__ = 'transfers'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    source_location_id = Column(String(36), ForeignKey('locations.id'))
    destination_location_id = Column(String(36), ForeignKey('locations.id'), nullable=False)
    status = Column(String(20), nullable=False, default='pending')

    line_items = relationship("TransferLineItem", back_populates="transfer")


class TransferLineItem(Base):
    __tablename__ = 'transfer_line_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    transfer_id = Column(String(36), ForeignKey('transfers.id'), nullable=False)
    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    transfer = relationship("Transfer", back_populates="line_items")


class IntelligenceSettings(Base):
    """Account-level overrides for the suggestion generator."""
    __tablename__ = 'intelligence_settings'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    critical_threshold_days = Column(Integer)
    warning_threshold_days = Column(Integer)
    planned_threshold_days = Column(Integer)
    default_safety_stock_days = Column(Integer)
    target_coverage_days = Column(Integer)
    include_in_transit_in_calculations = Column(Boolean)
    last_calculated_at = Column(DateTime)


class ReplenishmentSuggestion(Base):
    __tablename__ = 'replenishment_suggestions'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    type = Column(String(20), nullable=False)
    urgency = Column(String(10), nullable=False)
    status = Column(String(10), nullable=False, default=SuggestionStatus.PENDING.value)

    product_id = Column(String(36), ForeignKey('products.id'), nullable=False)
    sku = Column(String(100), default='')
    product_name = Column(String(200), default='')
    destination_location_id = Column(String(36), ForeignKey('locations.id'), nullable=False)
    destination_location_name = Column(String(200), default='')

    # Stock position at generation time
    current_stock = Column(Integer, default=0)
    in_transit_quantity = Column(Integer, default=0)
    reserved_quantity = Column(Integer, default=0)
    available_stock = Column(Integer, default=0)
    daily_sales_rate = Column(Float, default=0.0)
    weekly_sales_rate = Column(Float, default=0.0)
    days_of_stock_remaining = Column(Integer)  # NULL means no foreseeable stockout
    stockout_date = Column(Date)
    safety_stock_threshold = Column(Float, default=0.0)
    recommended_qty = Column(Integer, default=0)
    estimated_arrival = Column(Date)

    # Source / supplier / route references
    source_location_id = Column(String(36), ForeignKey('locations.id'))
    source_location_name = Column(String(200))
    source_available_qty = Column(Integer)
    supplier_id = Column(String(36), ForeignKey('suppliers.id'))
    supplier_name = Column(String(200))
    supplier_lead_time_days = Column(Integer)
    route_id = Column(String(36), ForeignKey('shipping_routes.id'))
    route_name = Column(String(200))
    route_method = Column(String(50))
    route_transit_days = Column(Integer)

    reasoning = Column(JSON)  # ordered list of {type, message, value}

    generated_at = Column(DateTime)
    snoozed_until = Column(DateTime)
    dismissed_reason = Column(Text)
    accepted_at = Column(DateTime)
    linked_entity_id = Column(String(36))
    linked_entity_type = Column(String(20))
    updated_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_replenishment_suggestions_key', 'product_id', 'destination_location_id', 'status'),
    )


class InventoryNotification(Base):
    """In-app notification, e.g. a position that just turned critical."""
    __tablename__ = 'inventory_notifications'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    type = Column(String(30), nullable=False)  # e.g. critical_stock
    title = Column(String(300), nullable=False)
    message = Column(Text, nullable=False)
    entity_type = Column(String(30))
    entity_id = Column(String(36))
    data = Column(JSON)
    created_at = Column(DateTime, server_default=func.now())
    read_at = Column(DateTime)
    dismissed_at = Column(DateTime)

    __table_args__ = (
        Index('idx_inventory_notifications_created', 'created_at'),
    )

"""
SQLAlchemy ORM models for the synced sales report.

Data Source: SharePoint "Daily Export - Sales Forecast_Report.xml"
One ReportHeader per sync run, many Sale rows pointing at it.
"""

from datetime import datetime
from typing import Dict, Any
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Numeric, Text, ForeignKey
from sqlalchemy.orm import declarative_base, relationship


# Declarative base for all models
Base = declarative_base()


class TimestampMixin:
    """Mixin for insert timestamp tracking (rows are never updated)"""
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class BaseModel:
    """Shared helpers for the report tables"""

    # Columns the database fills in, not part of the extracted record
    GENERATED_COLUMNS = ('id', 'created_at')

    def to_dict(self, include_generated: bool = True) -> Dict[str, Any]:
        """
        Column values by name; timestamps as ISO strings.

        With include_generated=False the result has the same keys as the
        record the row was inserted from.
        """
        result = {}
        for column in self.__table__.columns:
            if not include_generated and column.name in self.GENERATED_COLUMNS:
                continue
            value = getattr(self, column.name)
            result[column.name] = value.isoformat() if isinstance(value, datetime) else value
        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={getattr(self, 'id', None)})>"


def Money():
    """Currency column; values round-trip as Python floats."""
    return Numeric(14, 2, asdecimal=False)


class ReportHeader(Base, BaseModel, TimestampMixin):
    """
    Report provenance and parameters, one row per sync run.

    Values are stored as exported (dates and timestamps stay text).
    """
    __tablename__ = 'report_headers'

    id = Column(Integer, primary_key=True, autoincrement=True)

    company_name = Column(String(255), nullable=False, default='')
    report_name = Column(String(255), nullable=False, default='')
    created_datetime = Column(String(64), nullable=False, default='', comment="Export timestamp as text")
    locations = Column(Text, nullable=False, default='', comment="Geography parameter value name")
    date_range_type = Column(String(64), nullable=False, default='')
    start_date = Column(String(64), nullable=False, default='')
    end_date = Column(String(64), nullable=False, default='')
    total_loss_flag = Column(Boolean, nullable=False, default=False)
    carrier_name = Column(String(255), nullable=False, default='')
    vehicle_done_type = Column(String(64), nullable=False, default='')

    sales = relationship("Sale", back_populates="report_header")


class Sale(Base, BaseModel, TimestampMixin):
    """
    One repair order line from the sales forecast report.
    """
    __tablename__ = 'sales'

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_header_id = Column(Integer, ForeignKey('report_headers.id'), nullable=False, index=True)
    row_index = Column(Integer, nullable=False, default=0)

    # ========================================================================
    # Workfile / facility
    # ========================================================================
    workfile_id = Column(String(64), nullable=False, default='')
    repair_facility_name = Column(String(255), nullable=False, default='')
    repair_facility_number = Column(String(64), nullable=False, default='')
    franchise_id = Column(String(64), nullable=False, default='')
    repair_order_number = Column(String(64), nullable=False, default='')
    repair_plan_name = Column(String(255), nullable=False, default='')
    service_writer_display_name = Column(String(255), nullable=False, default='')

    # ========================================================================
    # Owner / vehicle
    # ========================================================================
    owner_name = Column(String(255), nullable=False, default='')
    owner_postal_code = Column(String(32), nullable=False, default='')
    vehicle_year_make_model = Column(String(255), nullable=False, default='')
    vehicle_make_name = Column(String(128), nullable=False, default='')
    vehicle_out_datetime = Column(String(64), nullable=False, default='')
    repair_completed_datetime = Column(String(64), nullable=False, default='')
    posted_date = Column(String(64), nullable=False, default='')

    # ========================================================================
    # Insurance / referral
    # ========================================================================
    carrier_name = Column(String(255), nullable=False, default='')
    master_carrier_name = Column(String(255), nullable=False, default='')
    is_total_loss = Column(Boolean, nullable=False, default=False)
    insurance_agent_name = Column(String(255), nullable=False, default='')
    primary_referral_name = Column(String(255), nullable=False, default='')
    primary_referral_note = Column(Text, nullable=False, default='')
    primary_poi = Column(String(255), nullable=False, default='')
    customer_custom_field_name_1 = Column(String(255), nullable=False, default='')
    customer_custom_field_name_2 = Column(String(255), nullable=False, default='')

    # ========================================================================
    # Amounts
    # ========================================================================
    part_amount = Column(Money(), nullable=False, default=0)
    labor_amount = Column(Money(), nullable=False, default=0)
    material_amount = Column(Money(), nullable=False, default=0)
    other_amount = Column(Money(), nullable=False, default=0)
    adjustment_amount = Column(Money(), nullable=False, default=0)
    subtotal_amount = Column(Money(), nullable=False, default=0)
    tax_amount = Column(Money(), nullable=False, default=0)
    total_amount = Column(Money(), nullable=False, default=0)

    report_header = relationship("ReportHeader", back_populates="sales")

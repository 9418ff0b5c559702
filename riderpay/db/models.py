from sqlalchemy import Column, String, Integer, Float, Date, DateTime, Index
from datetime import datetime
from riderpay.db.session import Base

class DailySettlementResult(Base):
    """One rider's saved daily settlement; the weekly run subtracts what was already paid here."""
    __tablename__ = "daily_settlement_results"
    id = Column(Integer, primary_key=True, autoincrement=True)
    license_id = Column(String, nullable=False, index=True)
    branch_id = Column(String, nullable=True)
    settlement_date = Column(Date, nullable=False)
    net_payout = Column(Float, nullable=True)
    next_day_settlement = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_daily_settlement_license_date", "license_id", "settlement_date"),
    )

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Float
from sqlalchemy.orm import relationship
from config.database import Base
from datetime import datetime
from uuid import uuid4


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    # One row per user; payment events upsert on this column
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True)
    plan_type = Column(String(50), nullable=False, default="premium")
    status = Column(String(20), nullable=False, default="inactive")  # active | inactive | cancelled
    started_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    external_id = Column(String(255), nullable=True)
    payment_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("Profile", back_populates="subscription")

    def __repr__(self):
        return f"<Subscription(user_id={self.user_id}, plan={self.plan_type}, status={self.status})>"


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    product = Column(String(255), nullable=False)
    plan = Column(String(50), nullable=False)
    value = Column(Float, nullable=False, default=0)
    payment_status = Column(String(50), nullable=False)
    transaction_id = Column(String(255), nullable=False)
    purchase_date = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)

    owner = relationship("Profile", back_populates="purchases")

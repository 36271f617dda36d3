# src/pm_privacy/infrastructure/db_models.py
"""ORM models for the privacy-pool tables. Stores issue raw SQL; these mirror the migrations."""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.pm_common.database import Base


class NullifierORM(Base):
    __tablename__ = "nullifiers"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    nullifier: Mapped[str] = mapped_column(String(66), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class BalanceLeafORM(Base):
    __tablename__ = "balance_leaves"

    leaf_index: Mapped[int] = mapped_column(Integer, primary_key=True)
    commitment: Mapped[str] = mapped_column(String(66), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

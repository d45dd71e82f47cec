"""SQLAlchemy models for the wallet identity cache."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class WalletIdentityEntry(Base):
    """Last-known wallet linkage value for a user.

    Keys are a small fixed set (see ``walletsync.identity.cache``).
    """

    __tablename__ = "wallet_identity"
    __table_args__ = (Index("ix_wallet_identity_user_key", "user_id", "key", unique=True),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

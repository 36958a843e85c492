from typing import Any, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PassportRecord(Base):
    __tablename__ = "passports"

    customer_id: Mapped[str] = mapped_column(String, primary_key=True)
    passport: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    last_updated_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    migrated_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)

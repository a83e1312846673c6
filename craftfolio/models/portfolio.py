import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from craftfolio.database import Base, new_id, utcnow


class PortfolioTemplate(str, enum.Enum):
    MODERN = "modern"
    MINIMAL = "minimal"
    CREATIVE = "creative"
    PROFESSIONAL = "professional"


class Portfolio(Base):
    __tablename__ = "portfolios"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # One portfolio per user; saves upsert on this column
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Contact
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    linkedin: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    github: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Ordered sections
    skills: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    projects: Mapped[List[dict]] = mapped_column(JSON, default=list, nullable=False)
    experience: Mapped[List[dict]] = mapped_column(JSON, default=list, nullable=False)
    education: Mapped[List[dict]] = mapped_column(JSON, default=list, nullable=False)

    template: Mapped[str] = mapped_column(String, default=PortfolioTemplate.MODERN.value, nullable=False)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

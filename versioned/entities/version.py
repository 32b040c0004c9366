"""Version model — one immutable snapshot of a versioned subject's prior state."""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Text, Integer, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from versioned.config import settings
from versioned.database import Base


class Version(Base):
    __tablename__ = settings.versions_table
    __table_args__ = (
        UniqueConstraint(
            "subject_id", "subject_class", "version_no",
            name=f"uq_{settings.versions_table}_subject_version_no",
        ),
        Index(f"ix_{settings.versions_table}_subject", "subject_id", "subject_class"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    version_no: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_class: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    user_id: Mapped[str] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Version {self.subject_class}#{self.subject_id} "
            f"v{self.version_no} id={self.id}>"
        )

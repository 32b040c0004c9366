"""Host models used by the test suite."""

from datetime import date, datetime, timezone

from sqlalchemy import String, DateTime, Date, Text, Integer, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column

from versioned.binding import VersionedMixin
from versioned.database import Base
from versioned.registry import type_registry


@type_registry.register
class Article(VersionedMixin, Base):
    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="draft")
    published_on: Mapped[date] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


@type_registry.register
class Page(VersionedMixin, Base):
    __tablename__ = "pages"
    __version_type__ = "page"
    __version_title_field__ = "heading"
    __version_on_delete__ = True

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    heading: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=True)


@type_registry.register
class Attachment(VersionedMixin, Base):
    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=True)

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Wire contract: exact, case-sensitive, validated identically on client and server.
DISTRICTS: tuple[str, ...] = (
    "Central and Western",
    "Eastern",
    "Southern",
    "Wan Chai",
    "Sham Shui Po",
    "Kowloon City",
    "Kwun Tong",
    "Wong Tai Sin",
    "Yau Tsim Mong",
    "Islands",
    "Kwai Tsing",
    "North",
    "Sai Kung",
    "Sha Tin",
    "Tai Po",
    "Tsuen Wan",
    "Tuen Mun",
    "Yuen Long",
)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    return value.replace(tzinfo=dt.timezone.utc) if value.tzinfo is None else value


def iso(value: dt.datetime | None) -> str | None:
    return as_utc(value).isoformat() if value else None


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    image: Mapped[str] = mapped_column(String(512), default="")
    # NULL for accounts created through Google sign-in.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    properties = relationship("Property", back_populates="owner", passive_deletes=True)


class Property(Base):
    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_owner_id", "owner_id"),
        Index("ix_properties_district", "district"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    size: Mapped[int] = mapped_column(Integer)  # square feet
    district: Mapped[str] = mapped_column(String(40))
    equipment: Mapped[str | None] = mapped_column(Text, nullable=True)  # comma-separated amenities
    # Stable storage keys only, never URLs.
    photos: Mapped[list[str]] = mapped_column(JSON, default=list)
    virtual_tour_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="properties")
    chats = relationship("Chat", back_populates="property", cascade="all, delete-orphan", passive_deletes=True)


class Chat(Base):
    """
    One conversation about a property between its owner and an inquiring user.

    `renter_id` is the property owner at creation time and `rentee_id` is the
    counterparty who opened the chat; the column names are kept for wire
    compatibility with existing clients.
    """

    __tablename__ = "chats"
    __table_args__ = (UniqueConstraint("property_id", "renter_id", "rentee_id", name="uq_chats_property_participants"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    renter_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    rentee_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    last_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_message_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    property = relationship("Property", back_populates="chats")
    messages = relationship("Message", back_populates="chat", cascade="all, delete-orphan", passive_deletes=True)

    def has_participant(self, user_id: int) -> bool:
        return int(user_id) in {int(self.renter_id), int(self.rentee_id)}


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    chat_id: Mapped[int] = mapped_column(ForeignKey("chats.id", ondelete="CASCADE"), index=True)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    chat = relationship("Chat", back_populates="messages")

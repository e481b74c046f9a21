"""
Local account models

A `Customer` holds profile data; its `ShopUser` is the identity that session
tokens are issued for.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from headless_oauth.core.database import Base
from headless_oauth.models.base import TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from headless_oauth.models.oauth_identity import ExternalIdentity  # pragma: no cover


class Customer(Base, TimestampMixin):
    """Customer profile."""

    __tablename__ = "customer"
    __table_args__ = (
        # one account per email regardless of case
        Index("customer_email_lower_uq", text("lower(email)"), unique=True),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True, default=generate_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    shop_user: Mapped[Optional["ShopUser"]] = relationship(
        "ShopUser",
        back_populates="customer",
        uselist=False,
        lazy="raise",
    )
    identities: Mapped[List["ExternalIdentity"]] = relationship(
        "ExternalIdentity",
        back_populates="customer",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, email={self.email})>"


class ShopUser(Base, TimestampMixin):
    """Login identity of a customer."""

    __tablename__ = "shop_user"

    id: Mapped[str] = mapped_column(String(255), primary_key=True, default=generate_uuid)
    customer_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("customer.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # OAuth users get a random password nobody knows
    has_usable_password: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="shop_user", lazy="raise")

    def __repr__(self) -> str:
        return f"<ShopUser(id={self.id}, customer_id={self.customer_id})>"

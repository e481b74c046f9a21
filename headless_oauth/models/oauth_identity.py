"""
External identity model

Links a customer to an account at an OAuth provider (Google, Apple, a
custom OIDC issuer, ...).
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from headless_oauth.core.database import Base
from headless_oauth.models.base import TimestampMixin, generate_uuid, utc_now

if TYPE_CHECKING:
    from headless_oauth.models.account import Customer  # pragma: no cover


class ExternalIdentity(Base, TimestampMixin):
    """
    OAuth identity link.

    One provider account belongs to at most one customer, and a customer
    holds at most one account per provider.
    """

    __tablename__ = "oauth_identity"
    __table_args__ = (
        Index("ix_oauth_identity_provider_account", "provider", "provider_account_id", unique=True),
        Index("ix_oauth_identity_customer_provider", "customer_id", "provider", unique=True),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True, default=generate_uuid)

    customer_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("customer.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Provider name as configured ("google", "keycloak", ...)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)

    # Subject at the provider (GitHub's numeric id is stored as a string)
    provider_account_id: Mapped[str] = mapped_column(String(255), nullable=False)

    connected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="identities", lazy="raise")

    def __repr__(self) -> str:
        return f"<ExternalIdentity(id={self.id}, provider={self.provider}, customer_id={self.customer_id})>"

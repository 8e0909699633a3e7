"""SQLAlchemy ORM models for server-side OAuth state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from xion_oauth.db.base import Base


class OauthPendingAuthorization(Base):
    __tablename__ = "oauth_pending_authorization"
    __table_args__ = (Index("idx_oauth_pending_authorization_expires_at", "expires_at_ms"),)

    state: Mapped[str] = mapped_column(Text, primary_key=True)
    code_verifier: Mapped[str | None] = mapped_column(Text)
    redirect_uri: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class OauthTokenRecord(Base):
    __tablename__ = "oauth_token_record"

    session_key: Mapped[str] = mapped_column(Text, primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    token_type: Mapped[str] = mapped_column(Text, nullable=False, default="Bearer")
    expires_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

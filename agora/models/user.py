from __future__ import annotations

from typing import List, Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agora.core.database import Base


class User(Base):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        index=True,
    )

    avatar_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )

    wallet_address: Mapped[Optional[str]] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
    )

    # reverse relationships
    memberships: Mapped[List["Member"]] = relationship(
        back_populates="user",
        foreign_keys="Member.user_id",
    )

    owned_communities: Mapped[List["Community"]] = relationship(
        back_populates="creator",
    )

    def __repr__(self):
        return f"<User {self.username}>"

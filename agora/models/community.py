from sqlalchemy import String, Text, Boolean, Integer, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column
from typing import List, Optional
from uuid import UUID

from agora.core.database import Base


class Community(Base):
    __tablename__ = "communities"

    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    logo_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )

    # Owner. Ownership is derived from this column and never stored as a member role.
    created_by: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Settings
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    require_approval: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    allow_public_voting: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    max_members: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )

    voting_threshold: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )

    # Relationships
    creator: Mapped["User"] = relationship(
        foreign_keys=[created_by],
        back_populates="owned_communities",
    )

    members: Mapped[List["Member"]] = relationship(
        back_populates="community",
    )

    def is_owner(self, user_id) -> bool:
        return str(self.created_by) == str(user_id)

    def __repr__(self):
        return f"<Community {self.name}>"

"""
User model — a customer (or the admin) known to the authentication provider.

Rows are created by the provider's user-sync webhook; ``clerk_id`` is the
provider subject carried in every bearer token.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, event
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    clerk_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False,
    )
    email: Mapped[str | None] = mapped_column(String(255))
    full_name: Mapped[str | None] = mapped_column(String(200))
    expo_push_token: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    orders = relationship("Order", back_populates="user")

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or self.clerk_id

    def __repr__(self) -> str:
        return f"<User {self.clerk_id} email={self.email!r}>"


@event.listens_for(User, "init")
def _set_user_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)

"""SQLAlchemy AdminAccount model."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hosting_admin.models.base import Base, utcnow

DEFAULT_ROLE = "admin"


class AdminAccount(Base):
    """An administrator allowed into the back-office.

    Rows are provisioned automatically the first time an allow-listed
    email requests a login code; there is no separate registration step.
    """

    __tablename__ = "admin_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(256), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=DEFAULT_ROLE)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    def __repr__(self) -> str:
        return f"<AdminAccount id={self.id} email={self.email!r} role={self.role!r}>"

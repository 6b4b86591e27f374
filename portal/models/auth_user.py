from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String

from portal.extensions import Base


class AuthUser(Base):
    """Account owned by the backend auth service.

    Role and other profile hints live in ``user_metadata`` rather than in
    dedicated columns.
    """

    __tablename__ = "auth_users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    user_metadata = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    last_sign_in_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<AuthUser id={self.id} email={self.email}>"

# backend/models/users.py
from sqlalchemy import Column, Integer, String, DateTime
from database import Base, utcnow

ADMIN_ROLE = "admin"
CUSTOMER_ROLE = "customer"

# Represents a user account with authentication details and system role
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=CUSTOMER_ROLE)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    last_modified = Column(DateTime(timezone=True), default=utcnow)

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == ADMIN_ROLE

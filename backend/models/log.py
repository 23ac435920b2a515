from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from database import Base, utcnow

# Audit trail row written after each successful (or rejected) business action
class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)

    ts = Column(DateTime(timezone=True), default=utcnow, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), index=True)
    resource = Column(String(50), index=True)
    status = Column(String(20), index=True)
    ip = Column(String(64), nullable=True)

    # Free-form context (ids, quantities, totals)
    meta = Column(JSON, nullable=True)

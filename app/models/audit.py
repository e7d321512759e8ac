from sqlalchemy import Column, DateTime, Integer, String

from ..core.timeutil import utcnow
from ..db import Base


class AuditLog(Base):
    __tablename__ = "audit_log"
    id = Column(Integer, primary_key=True)
    at = Column(DateTime, default=utcnow)
    user_id = Column(String)
    entity = Column(String)
    entity_id = Column(String)
    action = Column(String)  # recompute | draw
    payload_json = Column(String)

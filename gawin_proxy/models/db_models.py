from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, Integer, String, DateTime, Float, Text

from ..core.database import Base


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AccessLog(Base):
    __tablename__ = "access_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime, default=_utcnow, index=True)
    ip_address = Column(String, index=True)
    path = Column(String, index=True)
    method = Column(String)
    status_code = Column(Integer)
    process_time_ms = Column(Float)
    user_agent = Column(String)


class ChatUsageRecord(Base):
    __tablename__ = "chat_usage_records"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=_utcnow, index=True)
    request_id = Column(String, index=True)
    route = Column(String, index=True)
    provider = Column(String, index=True)
    model_used = Column(String)
    fallback_used = Column(Boolean, default=False)
    # "adapter:reason" pairs joined with "; "
    attempts = Column(Text, default="")
    prompt_tokens = Column(Integer, default=0)
    completion_tokens = Column(Integer, default=0)
    total_tokens = Column(Integer, default=0)

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from .database import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    business_type = Column(String, nullable=True)

    source_page = Column(String, nullable=False, default="landing")
    source_cta = Column(String, nullable=True)
    utm_source = Column(String, nullable=True)
    utm_medium = Column(String, nullable=True)
    utm_campaign = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)

    # new|contacted|qualified|proposal_sent|demo_scheduled|won|lost|rejected
    status = Column(String, nullable=False, default="new", index=True)
    status_history = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    demo_requested = Column(Boolean, nullable=False, default=False)
    video_watched = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "business_type": self.business_type,
            "source_page": self.source_page,
            "source_cta": self.source_cta,
            "utm_source": self.utm_source,
            "utm_medium": self.utm_medium,
            "utm_campaign": self.utm_campaign,
            "status": self.status,
            "status_history": list(self.status_history or []),
            "notes": self.notes,
            "demo_requested": bool(self.demo_requested),
            "video_watched": bool(self.video_watched),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

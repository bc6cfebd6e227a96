"""Encrypted secret storage, keyed by a derived credential key."""

from sqlalchemy import Column, String, Text

from tickr.database import Base, UTCDateTime, utcnow


class Credential(Base):

    __tablename__ = "credentials"

    key = Column(String(512), primary_key=True)
    secret = Column(Text, nullable=False)  # Encrypted
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Credential(key='{self.key}')>"

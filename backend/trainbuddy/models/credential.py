"""Identity-provider ORM models: password credentials and issued session tokens."""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from trainbuddy.database import Base


class Credential(Base):
    __tablename__ = "credentials"

    uid = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=True, unique=True)
    password_hash = Column(String(255), nullable=False, default="")
    display_name = Column(String(100), nullable=True)
    phone_number = Column(String(32), nullable=True)
    provider = Column(String(32), nullable=False, default="password")
    provider_subject = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tokens = relationship("AuthToken", back_populates="credential", cascade="all, delete-orphan")


class AuthToken(Base):
    __tablename__ = "auth_tokens"

    token = Column(String(64), primary_key=True)
    uid = Column(String(36), ForeignKey("credentials.uid"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    credential = relationship("Credential", back_populates="tokens")

"""
Shared-secret de cada tenant por plataforma de vendas.

Uma linha por (tenant_id, platform). O segredo nunca é guardado em texto puro:
secret_hash (SHA-256) é o índice global usado para descobrir o tenant de um webhook,
secret_encrypted (Fernet) permite ao admin do tenant rever/rotacionar o valor.
"""
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class Platform(str, enum.Enum):
    HOTMART = "hotmart"
    KIWIFY = "kiwify"


class PlatformCredential(Base):
    __tablename__ = "platform_credentials"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    platform = Column(Enum(Platform), nullable=False)

    # NULL quando a integração foi desconectada
    secret_hash = Column(String(64), unique=True, nullable=True, index=True)
    secret_encrypted = Column(Text, nullable=True)

    # Dono padrão dos deals criados via webhook; SET NULL ao deletar o usuário
    owner_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    is_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    tenant = relationship("Tenant", back_populates="credentials")
    owner = relationship("User", foreign_keys=[owner_user_id])

    __table_args__ = (
        UniqueConstraint("tenant_id", "platform", name="uq_platform_credentials_tenant_platform"),
    )

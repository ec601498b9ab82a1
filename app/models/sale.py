"""
Espelho desnormalizado de uma compra aprovada ("venda"), lido por dashboards, metas e ranking.

Ledger imutável: reembolsos/cancelamentos aparecem apenas no Deal vinculado.
"""
import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class SaleStatus(str, enum.Enum):
    APROVADO = "Aprovado"
    PENDENTE = "Pendente"
    REEMBOLSADO = "Reembolsado"


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Um espelho por deal; UNIQUE torna a compensação idempotente
    deal_id = Column(Integer, ForeignKey("deals.id", ondelete="SET NULL"), unique=True, nullable=True)

    customer_name = Column(String(255), nullable=False)
    product_name = Column(String(255), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    platform = Column(String(50), nullable=True)
    payment_method = Column(String(50), nullable=False)
    status = Column(
        Enum(SaleStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SaleStatus.APROVADO,
    )
    observation = Column(Text, nullable=True)
    sale_date = Column(Date, nullable=False, server_default=func.current_date())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    deal = relationship("Deal", back_populates="sale")

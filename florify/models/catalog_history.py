from datetime import datetime

from florify.core.ids import gen_id
from sqlalchemy import String, JSON, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from florify.models.base import Base

class CatalogHistoryEntry(Base):
    __tablename__ = "historico_produtos_cvh"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("hst"))
    importacao_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("importacoes_cvh.id", ondelete="SET NULL"), nullable=True
    )
    usuario_id: Mapped[str | None] = mapped_column(String, nullable=True)

    # codbarra identifies the product; item_code is kept for compatibility only
    codbarra: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    item_code: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    dados_anteriores: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    dados_novos: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    tipo_operacao: Mapped[str] = mapped_column(String(40), nullable=False)  # insercao|alteracao|importacao
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # sucesso|erro
    mensagem_erro: Mapped[str | None] = mapped_column(Text, nullable=True)

    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    data_alteracao: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

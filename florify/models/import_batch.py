from __future__ import annotations
from datetime import datetime
from florify.core.ids import gen_id
from sqlalchemy import String, DateTime, JSON, Integer
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from florify.models.base import Base

class ImportBatch(Base):
    __tablename__ = "importacoes_cvh"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("imp"))
    nome_arquivo: Mapped[str] = mapped_column(String(255), nullable=False)
    arquivo_path: Mapped[str] = mapped_column(String(500), nullable=False)

    total_linhas: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    novos: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    alterados: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(16), nullable=False)  # pending|completed|failed
    usuario_id: Mapped[str | None] = mapped_column(String, nullable=True)
    diff_preview: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False,)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False,)

from __future__ import annotations
from datetime import date, datetime

from sqlalchemy import BigInteger, Date, DateTime, Float, String, Text, Identity
from sqlalchemy.orm import Mapped, mapped_column

from florify.models.base import Base


class CatalogProduct(Base):
    __tablename__ = "produtos_cvh"

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    # codbarra is the only stable identity; item_code is display-only
    codbarra: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    item_code: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    descricao: Mapped[str] = mapped_column(Text, nullable=False)
    descricao_curta: Mapped[str | None] = mapped_column(Text, nullable=True)
    cod_categoria: Mapped[str | None] = mapped_column(String(64), nullable=True)
    descricao_categoria: Mapped[str | None] = mapped_column(Text, nullable=True)
    cod_grupo: Mapped[str | None] = mapped_column(String(64), nullable=True)
    descricao_grupo: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_cadastro: Mapped[date | None] = mapped_column(Date, nullable=True)

    ncm: Mapped[str | None] = mapped_column(String(32), nullable=True)
    class_cond: Mapped[str | None] = mapped_column(String(64), nullable=True)
    grupo_com: Mapped[str | None] = mapped_column(String(64), nullable=True)
    grupo_log: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cst_sp: Mapped[str | None] = mapped_column(String(32), nullable=True)

    peso: Mapped[float | None] = mapped_column(Float, nullable=True)
    cpc: Mapped[str | None] = mapped_column(String(64), nullable=True)
    epc: Mapped[str | None] = mapped_column(String(64), nullable=True)
    upc: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cor: Mapped[str | None] = mapped_column(String(64), nullable=True)
    foto: Mapped[str | None] = mapped_column(Text, nullable=True)

    preco_unitario: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    unidade_medida: Mapped[str] = mapped_column(String(16), nullable=False, default="")

    importacao_id: Mapped[str | None] = mapped_column(String, nullable=True)
    lastupdatedate: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

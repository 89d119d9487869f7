import base64
import binascii
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from florify.services.catalog_importer import CatalogImportOutcome
from florify.services.catalog_types import CatalogRecord
from florify.services.reconciliation import CatalogAnalysis


class CatalogImportRequest(BaseModel):
    """
    The upload travels either as text (`content`, archived re-encoded as
    UTF-8) or as the original file bytes in base64 (`content_base64`,
    archived byte for byte, BOM and line endings included).
    """
    filename: str
    content: str | None = None
    content_base64: str | None = None
    # codbarra lists; None keeps every new/changed row
    selected_new: list[str] | None = None
    selected_changed: list[str] | None = None

    @field_validator("content_base64")
    @classmethod
    def check_base64(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                base64.b64decode(v, validate=True)
            except binascii.Error as e:
                raise ValueError(f"content_base64 is not valid base64: {e}") from e
        return v

    @model_validator(mode="after")
    def one_content(self) -> "CatalogImportRequest":
        if (self.content is None) == (self.content_base64 is None):
            raise ValueError("send exactly one of content or content_base64")
        return self

    def raw_bytes(self) -> bytes:
        if self.content_base64 is not None:
            return base64.b64decode(self.content_base64, validate=True)
        return self.content.encode("utf-8")


class ChangedProduct(BaseModel):
    linha: int
    atual: dict[str, Any]
    novo: dict[str, Any]
    diferencas: dict[str, dict[str, Any]]


class AnalysisError(BaseModel):
    linha: int
    erro: str


class CatalogAnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    novos: list[dict[str, Any]] = Field(default_factory=list)
    alterados: list[ChangedProduct] = Field(default_factory=list)
    sem_alteracao: list[dict[str, Any]] = Field(default_factory=list, serialization_alias="semAlteracao")
    erros: list[AnalysisError] = Field(default_factory=list)
    summary: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_analysis(cls, analysis: CatalogAnalysis) -> "CatalogAnalysisResponse":
        return cls(
            novos=[o.record.as_payload() for o in analysis.novos],
            alterados=[
                ChangedProduct(
                    linha=o.line,
                    atual=o.existing.as_payload(),
                    novo=o.incoming.as_payload(),
                    diferencas=o.diff_payload(),
                )
                for o in analysis.alterados
            ],
            sem_alteracao=[o.existing.as_payload() for o in analysis.sem_alteracao],
            erros=[AnalysisError(**e.as_dict()) for e in analysis.erros],
            summary=analysis.summary(),
        )


class CatalogImportResponse(BaseModel):
    batch_id: str
    status: str
    arquivo_path: str
    new_applied: int
    changed_applied: int
    audit: dict[str, int]

    @classmethod
    def from_outcome(cls, outcome: CatalogImportOutcome) -> "CatalogImportResponse":
        return cls(
            batch_id=outcome.batch_id,
            status=outcome.status,
            arquivo_path=outcome.arquivo_path,
            new_applied=outcome.new_applied,
            changed_applied=outcome.changed_applied,
            audit=outcome.audit.as_dict(),
        )


class ImportBatchResponse(BaseModel):
    id: str
    nome_arquivo: str
    arquivo_path: str
    total_linhas: int
    novos: int
    alterados: int
    status: str
    usuario_id: str | None = None
    diff_preview: dict = Field(default_factory=dict)
    created_at: datetime | None = None


class CatalogProductResponse(BaseModel):
    codbarra: str
    descricao: str
    item_code: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: CatalogRecord) -> "CatalogProductResponse":
        return cls(codbarra=record.codbarra, descricao=record.descricao, item_code=record.item_code, data=record.as_payload())

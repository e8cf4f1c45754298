from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from beanie import Document
from pydantic import BaseModel, Field


class DocumentFailure(BaseModel):
    document_id: Any
    error: str


class RenameReport(BaseModel):
    source: str
    target: str
    moved: List[Any] = Field(default_factory=list)
    copy_failures: List[DocumentFailure] = Field(default_factory=list)
    delete_failures: List[DocumentFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.copy_failures and not self.delete_failures

    @property
    def failures(self) -> List[DocumentFailure]:
        return [*self.copy_failures, *self.delete_failures]


class OperationRun(Document):
    operation: str
    database: str
    collection: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    affected_count: int = 0
    failures: List[Dict[str, Any]] = Field(default_factory=list)
    dry_run: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "toolbox_runs"

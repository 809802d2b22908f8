"""
Pydantic schemas for batch operations.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class BatchItem(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    status: str
    result: Optional[Any] = None
    error: Optional[str] = None


class BackupEntry(BaseModel):
    id: str
    timestamp: str
    backup: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class BatchSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 0.0


class BatchResult(BaseModel):
    operation: str
    total: int = 0
    successful: List[BatchItem] = Field(default_factory=list)
    failed: List[BatchItem] = Field(default_factory=list)
    dry_run: bool = False
    backups: List[BackupEntry] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)

    def finalize(self) -> "BatchResult":
        done = len(self.successful) + len(self.failed)
        self.summary = BatchSummary(
            total=self.total,
            successful=len(self.successful),
            failed=len(self.failed),
            success_rate=round(len(self.successful) / done * 100, 2) if done else 0.0,
        )
        return self

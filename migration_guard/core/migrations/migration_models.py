"""
Migration Models

Data models for migration attempts, backups, validation and execution results.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from migration_guard.core.sql import DefaultValue


class MigrationStatus(Enum):
    """Migration attempt status."""
    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass
class MigrationRecord:
    """
    One named migration attempt held by the ExecutionLog.
    """
    name: str
    start_time: datetime
    status: MigrationStatus = MigrationStatus.STARTED
    end_time: Optional[datetime] = None
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ms(self) -> int:
        if self.end_time is None:
            return 0
        delta = self.end_time - self.start_time
        return max(0, int(delta.total_seconds() * 1000))

    def __str__(self) -> str:
        return f"MigrationRecord({self.name}, {self.status.value})"


@dataclass(frozen=True)
class BackupDescriptor:
    """
    A point-in-time copy of one table.
    """
    source_table: str
    backup_identifier: str
    row_count: int
    created_at: datetime
    timestamp: str


@dataclass
class ColumnOptions:
    """Column settings for guarded ADD COLUMN statements."""
    nullable: bool = True
    default: Optional[DefaultValue] = None


class ValidationOutcome(BaseModel):
    """Result of a pre-flight check. Any error makes the outcome invalid."""
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def valid(self) -> bool:
        return not self.errors


class ExecutionOptions(BaseModel):
    """Per-run options for MigrationExecutor.run."""
    skip_backup: bool = False
    skip_validation: bool = False
    dry_run: bool = False
    # None defers to GuardSettings.fail_on_validation_errors
    fail_on_validation_errors: Optional[bool] = None
    table: Optional[str] = None
    column: Optional[str] = None


class ExecutionResult(BaseModel):
    """Outcome of one orchestrated migration run."""
    success: bool
    migration_name: str
    duration_ms: int = 0
    backup: Optional[BackupDescriptor] = None
    validation_errors: List[str] = Field(default_factory=list)
    validation_warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    dry_run: bool = False

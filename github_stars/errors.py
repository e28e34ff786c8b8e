"""Error kinds surfaced by the synchronization core."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    REQUEST_FAILED = "RequestFailed"
    DESERIALIZATION_FAILED = "DeserializationFailed"
    IMPORT_FAILED = "ImportFailed"
    DATABASE_SAVE_FAILED = "DatabaseSaveFailed"
    SCHEMA_CREATION_FAILED = "SchemaCreationFailed"
    INITIALIZATION_FAILED = "InitializationFailed"
    REMOVE_UNSTARRED_FAILED = "RemoveUnstarredRepositoriesFailed"
    DATABASE_IS_NOT_INITIALIZED = "DatabaseIsNotInitialized"
    FILE_IS_NOT_EXISTS = "FileIsNotExists"
    FILE_CAN_NOT_BE_REMOVED = "FileCanNotBeRemoved"
    RENDER_FAILED = "RenderFailed"
    LOCKED = "Locked"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ErrorCode.REQUEST_FAILED: "GitHub GraphQL request failed",
    ErrorCode.DESERIALIZATION_FAILED: "Repository data could not be deserialized",
    ErrorCode.IMPORT_FAILED: "Import to storage failed",
    ErrorCode.DATABASE_SAVE_FAILED: "Unable to save database file",
    ErrorCode.SCHEMA_CREATION_FAILED: "Database schema creation failed",
    ErrorCode.INITIALIZATION_FAILED: "Storage initialization failed",
    ErrorCode.REMOVE_UNSTARRED_FAILED: "Remove unstarred repositories failed",
    ErrorCode.DATABASE_IS_NOT_INITIALIZED: "Database is not initialized",
    ErrorCode.FILE_IS_NOT_EXISTS: "Database file does not exist",
    ErrorCode.FILE_CAN_NOT_BE_REMOVED: "File can not be removed",
    ErrorCode.RENDER_FAILED: "Page rendering failed",
    ErrorCode.LOCKED: "Another operation is already in progress",
}


@dataclass(frozen=True, slots=True)
class SyncFailure:
    """Error payload carried by :class:`~github_stars.results.Err`."""

    code: ErrorCode
    detail: str | None = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.code.message}: {self.detail}"
        return self.code.message


__all__ = ["ErrorCode", "SyncFailure"]

from pydantic import BaseModel
from typing import Optional


# --- Raw provider payloads (shape of the dashboard metadata API) ---


class TableSummary(BaseModel):
    table_name: str
    row_count: Optional[int] = None


class ColumnInfo(BaseModel):
    column_name: str
    data_type: str
    is_nullable: str = "YES"
    column_default: Optional[str] = None


class ConstraintInfo(BaseModel):
    constraint_name: str = ""
    constraint_type: str
    column_name: Optional[str] = None


class ForeignKeyInfo(BaseModel):
    constraint_name: str
    column_name: str
    referenced_table: str
    referenced_column: str


class TableStructure(BaseModel):
    columns: list[ColumnInfo] = []
    constraints: list[ConstraintInfo] = []
    foreign_keys: list[ForeignKeyInfo] = []


# --- Normalized metadata ---


class ColumnMetadata(BaseModel):
    name: str
    data_type: str
    nullable: bool = True
    default_expression: Optional[str] = None
    is_primary_key: bool = False


class ForeignKeyDescriptor(BaseModel):
    constraint_name: str
    source_column: str
    target_table: str
    target_column: str


class TableMetadata(BaseModel):
    name: str
    columns: list[ColumnMetadata] = []
    foreign_keys: list[ForeignKeyDescriptor] = []
    row_count_estimate: Optional[int] = None
    degraded: bool = False


class Diagnostic(BaseModel):
    table: str
    message: str

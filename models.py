"""
Pydantic Models

Request/response models for the pipeline service and the engine settings.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from enum import Enum


class SourceKind(str, Enum):
    """Supported pipeline sources"""
    VALUES = "values"
    RANGE = "range"
    FIBONACCI = "fibonacci"


class OperationType(str, Enum):
    """Lazy combinators available to a pipeline"""
    TAKE = "take"
    DROP = "drop"
    MAP = "map"
    FILTER = "filter"
    FILTER_MAP = "filter_map"
    CHAIN = "chain"
    TAKE_WHILE = "take_while"
    DROP_WHILE = "drop_while"
    ENUMERATE = "enumerate"
    ZIP = "zip"
    ELEM_INDICES = "elem_indices"


class TerminalType(str, Enum):
    """Operations that consume the pipeline"""
    COLLECT = "collect"
    REDUCE = "reduce"
    FOLD = "fold"
    COUNT = "count"


COUNTED_OPERATIONS = {OperationType.TAKE, OperationType.DROP}
FUNCTION_OPERATIONS = {
    OperationType.MAP,
    OperationType.FILTER,
    OperationType.FILTER_MAP,
    OperationType.TAKE_WHILE,
    OperationType.DROP_WHILE,
}
BINARY_OPERATIONS = {OperationType.CHAIN, OperationType.ZIP}


class EngineSettings(BaseModel):
    """Runtime configuration, usually loaded from ITPLUS_* environment variables"""
    log_level: str = Field("INFO", description="Root logging level")
    collect_initial_capacity: int = Field(
        64,
        description="Initial buffer size used by collect",
        ge=1
    )
    max_operations: int = Field(
        32,
        description="Maximum number of operations accepted in one pipeline",
        ge=1
    )
    max_items: int = Field(
        10000,
        description="Maximum items a literal or range source may hold, and maximum pulls from an unbounded source",
        ge=1
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is a standard logging level name"""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level


class SourceSpec(BaseModel):
    """Where a pipeline pulls its elements from"""
    kind: SourceKind = Field(SourceKind.VALUES, description="Source type")
    values: Optional[List[Any]] = Field(
        None,
        description="Literal elements (kind=values)",
        examples=[[1, 2, 3]]
    )
    start: int = Field(0, description="First value (kind=range)")
    stop: Optional[int] = Field(None, description="Exclusive end (kind=range)")
    step: int = Field(1, description="Increment (kind=range)")

    @model_validator(mode='after')
    def validate_source(self):
        """Ensure each kind carries the fields it needs"""
        if self.kind == SourceKind.VALUES and self.values is None:
            raise ValueError("A 'values' source requires a values list")
        if self.kind == SourceKind.RANGE:
            if self.stop is None:
                raise ValueError("A 'range' source requires stop")
            if self.step == 0:
                raise ValueError("Range step must not be zero")
        return self

    @property
    def bounded(self) -> bool:
        return self.kind != SourceKind.FIBONACCI


class OperationSpec(BaseModel):
    """One lazy combinator applied to the pipeline"""
    type: OperationType = Field(..., description="Combinator to apply")
    count: Optional[int] = Field(None, description="Element count for take/drop")
    function: Optional[str] = Field(
        None,
        description="Registered function name for map/filter/filter_map/take_while/drop_while",
        examples=["square"]
    )
    other: Optional[SourceSpec] = Field(None, description="Second source for chain/zip")

    @model_validator(mode='after')
    def validate_operation(self):
        """Ensure each combinator carries its parameter"""
        if self.type in COUNTED_OPERATIONS and self.count is None:
            raise ValueError(f"Operation '{self.type.value}' requires count")
        if self.type in FUNCTION_OPERATIONS and not (self.function and self.function.strip()):
            raise ValueError(f"Operation '{self.type.value}' requires function")
        if self.type in BINARY_OPERATIONS and self.other is None:
            raise ValueError(f"Operation '{self.type.value}' requires an 'other' source")
        return self


class TerminalSpec(BaseModel):
    """How the pipeline is consumed"""
    type: TerminalType = Field(TerminalType.COLLECT, description="Terminal operation")
    function: Optional[str] = Field(
        None,
        description="Registered binary function for reduce/fold",
        examples=["add"]
    )
    initial: Any = Field(None, description="Seed value for fold")

    @model_validator(mode='after')
    def validate_terminal(self):
        """reduce and fold need a combining function"""
        if self.type in {TerminalType.REDUCE, TerminalType.FOLD} and not self.function:
            raise ValueError(f"Terminal '{self.type.value}' requires function")
        return self


class PipelineRequest(BaseModel):
    """A declarative pipeline: source, lazy operations, terminal"""
    source: SourceSpec = Field(..., description="Pipeline source")
    operations: List[OperationSpec] = Field(
        default_factory=list,
        description="Combinators, applied in order"
    )
    terminal: TerminalSpec = Field(
        default_factory=TerminalSpec,
        description="Terminal operation"
    )


class PerformanceInfo(BaseModel):
    """Timing and memory for one pipeline run"""
    processing_time_ms: float = Field(..., ge=0)
    memory_usage_mb: float = Field(..., ge=0)
    operation: str


class PipelineResponse(BaseModel):
    """Result of evaluating a pipeline"""
    ok: bool = Field(True, description="Request success status")
    terminal: TerminalType
    result: Any = Field(None, description="Terminal result")
    present: Optional[bool] = Field(
        None,
        description="For reduce: whether the pipeline produced any element"
    )
    length: Optional[int] = Field(None, description="For collect: number of elements", ge=0)
    operations_applied: List[str] = Field(default_factory=list)
    performance: PerformanceInfo
    timestamp: datetime = Field(default_factory=datetime.now)


class FunctionRegistryResponse(BaseModel):
    """Named functions usable in pipeline requests"""
    ok: bool = True
    functions: Dict[str, List[str]]
    total_functions: int = Field(..., ge=0)


class PerformanceSummary(BaseModel):
    total_operations: int = Field(..., ge=0)
    total_time_ms: float = Field(..., ge=0)
    total_memory_mb: float = Field(..., ge=0)
    avg_time_ms: float = Field(..., ge=0)
    avg_memory_mb: float = Field(..., ge=0)


class HealthResponse(BaseModel):
    """Service health"""
    healthy: bool
    memory_rss_mb: float = Field(..., ge=0)
    performance: PerformanceSummary
    settings: EngineSettings
    timestamp: datetime = Field(default_factory=datetime.now)


class StatusResponse(BaseModel):
    ok: bool
    message: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error payload"""
    ok: bool = False
    error: str
    error_type: str
    timestamp: datetime

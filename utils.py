"""
Utility functions for the pipeline service

Logging and settings setup, performance measurement, the named-function
registry, and building/evaluating declarative pipelines with the lazy
combinators.
"""

import gc
import logging
import math
import os
import sys
import time
import tracemalloc
from collections import deque
from typing import Any, Callable, Dict, List, Optional

from lazy import LazyIterable, collect, count, fold, reduce
from maybe import ItplusError, Maybe
from models import (
    EngineSettings, OperationSpec, OperationType, PipelineRequest,
    SourceKind, SourceSpec, TerminalSpec, TerminalType
)
from pair import Pair
from sources import Counting, Fibonacci, SequenceWalker


class PipelineError(ItplusError, ValueError):
    """Raised when a pipeline description cannot be built or evaluated"""


# ---------- Logging and settings ----------

def setup_logging(level: str = "INFO") -> logging.Logger:
    """Setup structured logging for the pipeline service"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    return logging.getLogger('itplus')


logger = logging.getLogger('itplus.pipeline')

_ENV_SETTINGS = {
    "ITPLUS_LOG_LEVEL": "log_level",
    "ITPLUS_COLLECT_CAPACITY": "collect_initial_capacity",
    "ITPLUS_MAX_OPERATIONS": "max_operations",
    "ITPLUS_MAX_ITEMS": "max_items",
}


def load_settings(environ: Optional[Dict[str, str]] = None) -> EngineSettings:
    """Build EngineSettings from ITPLUS_* environment variables"""
    environ = os.environ if environ is None else environ
    values = {field: environ[name] for name, field in _ENV_SETTINGS.items() if name in environ}
    return EngineSettings(**values)


# ---------- Performance tracking ----------

# Only the most recent runs are kept; the totals cover every run
MAX_RECORDED_OPERATIONS = 1000

_performance_metrics = {
    "operations": deque(maxlen=MAX_RECORDED_OPERATIONS),
    "total_time_ms": 0.0,
    "total_memory_mb": 0.0,
    "operation_count": 0
}


def _record(info: Dict[str, Any]) -> None:
    _performance_metrics["operations"].append(info)
    _performance_metrics["total_time_ms"] += info["execution_time_ms"]
    _performance_metrics["total_memory_mb"] += info["memory_usage_mb"]
    _performance_metrics["operation_count"] += 1


def measure_performance(operation_name: str, func: Callable, *args, **kwargs) -> Dict[str, Any]:
    """Run func, recording wall time and peak traced memory; returns the metrics with the result"""
    tracemalloc.start()
    gc.collect()
    start_time = time.perf_counter()
    success = False

    try:
        result = func(*args, **kwargs)
        success = True
    finally:
        execution_time_ms = (time.perf_counter() - start_time) * 1000
        _, peak = tracemalloc.get_traced_memory()
        tracemalloc.stop()
        info = {
            "operation": operation_name,
            "execution_time_ms": execution_time_ms,
            "memory_usage_mb": peak / 1024 / 1024,
            "success": success,
            "timestamp": time.time()
        }
        _record(info)

    info["result"] = result
    return info


def get_performance_summary() -> Dict[str, Any]:
    """Get summary of all performance metrics"""
    total = _performance_metrics["operation_count"]
    if total == 0:
        return {
            "total_operations": 0,
            "total_time_ms": 0.0,
            "total_memory_mb": 0.0,
            "avg_time_ms": 0.0,
            "avg_memory_mb": 0.0
        }

    return {
        "total_operations": total,
        "total_time_ms": _performance_metrics["total_time_ms"],
        "total_memory_mb": _performance_metrics["total_memory_mb"],
        "avg_time_ms": _performance_metrics["total_time_ms"] / total,
        "avg_memory_mb": _performance_metrics["total_memory_mb"] / total
    }


def clear_performance_metrics():
    """Clear all performance metrics"""
    global _performance_metrics
    _performance_metrics = {
        "operations": deque(maxlen=MAX_RECORDED_OPERATIONS),
        "total_time_ms": 0.0,
        "total_memory_mb": 0.0,
        "operation_count": 0
    }


# ---------- Named function registry ----------

def _parse_int(x: Any) -> Maybe[int]:
    try:
        return Maybe.present(int(x))
    except (TypeError, ValueError):
        return Maybe.empty()


def _isqrt_if_square(x: Any) -> Maybe[int]:
    if isinstance(x, int) and x >= 0 and math.isqrt(x) ** 2 == x:
        return Maybe.present(math.isqrt(x))
    return Maybe.empty()


UNARY_FUNCTIONS: Dict[str, Callable[[Any], Any]] = {
    "identity": lambda x: x,
    "square": lambda x: x * x,
    "double": lambda x: x * 2,
    "increment": lambda x: x + 1,
    "negate": lambda x: -x,
}

PAIR_FUNCTIONS: Dict[str, Callable[[Pair], Any]] = {
    "pair_product": lambda p: p.first * p.second,
    "pair_sum": lambda p: p.first + p.second,
    "first": lambda p: p.first,
    "second": lambda p: p.second,
}

PREDICATES: Dict[str, Callable[[Any], bool]] = {
    "is_even": lambda x: x % 2 == 0,
    "is_odd": lambda x: x % 2 != 0,
    "is_positive": lambda x: x > 0,
    "is_negative": lambda x: x < 0,
    "is_nonzero": lambda x: x != 0,
    "pair_equal": lambda p: p.first == p.second,
}

PARTIAL_FUNCTIONS: Dict[str, Callable[[Any], Maybe]] = {
    "parse_int": _parse_int,
    "half_if_even": lambda x: Maybe.present(x // 2) if x % 2 == 0 else Maybe.empty(),
    "sqrt_if_square": _isqrt_if_square,
}

BINARY_FUNCTIONS: Dict[str, Callable[[Any, Any], Any]] = {
    "add": lambda a, b: a + b,
    "subtract": lambda a, b: a - b,
    "multiply": lambda a, b: a * b,
    "max": lambda a, b: a if a >= b else b,
    "min": lambda a, b: a if a <= b else b,
}

FUNCTION_GROUPS = {
    "unary": UNARY_FUNCTIONS,
    "pair": PAIR_FUNCTIONS,
    "predicate": PREDICATES,
    "partial": PARTIAL_FUNCTIONS,
    "binary": BINARY_FUNCTIONS,
}

_OPERATION_GROUPS = {
    OperationType.MAP: ("unary", "pair"),
    OperationType.FILTER: ("predicate",),
    OperationType.TAKE_WHILE: ("predicate",),
    OperationType.DROP_WHILE: ("predicate",),
    OperationType.FILTER_MAP: ("partial",),
}


def list_functions() -> Dict[str, List[str]]:
    return {group: sorted(functions) for group, functions in FUNCTION_GROUPS.items()}


def resolve_function(name: str, groups) -> Callable:
    """Look a function up by name in the given registry groups"""
    for group in groups:
        if name in FUNCTION_GROUPS[group]:
            return FUNCTION_GROUPS[group][name]
    raise PipelineError(f"Unknown function '{name}' (expected one of: {', '.join(groups)})")


# ---------- Pipeline building ----------

class PullBudget(LazyIterable):
    """
    Caps how many times an unbounded source may be pulled.

    A take() only limits how many items leave the pipeline; filters and drops
    upstream of it can still pull without end. Pulling past the budget raises
    PipelineError instead.
    """

    def __init__(self, source: LazyIterable, limit: int):
        self.source = source
        self.limit = limit
        self.pulled = 0

    def next(self) -> Maybe:
        if self.pulled >= self.limit:
            raise PipelineError(f"Unbounded source pulled more than {self.limit} times")
        self.pulled += 1
        return self.source.next()


def build_source(spec: SourceSpec, settings: EngineSettings) -> LazyIterable:
    """Turn a SourceSpec into a LazyIterable"""
    if spec.kind == SourceKind.VALUES:
        if len(spec.values) > settings.max_items:
            raise PipelineError(f"Source holds {len(spec.values)} items (max {settings.max_items})")
        return SequenceWalker(list(spec.values))

    if spec.kind == SourceKind.RANGE:
        size = len(range(spec.start, spec.stop, spec.step))
        if size > settings.max_items:
            raise PipelineError(f"Range spans {size} items (max {settings.max_items})")
        return Counting(spec.start, spec.step, spec.stop)

    return PullBudget(Fibonacci(), settings.max_items)


def build_pipeline(request: PipelineRequest, settings: EngineSettings) -> LazyIterable:
    """
    Compose the request's operations over its source.

    Nothing is pulled here. Raises PipelineError for unknown functions, too
    many operations, or a pipeline whose length would be unbounded.
    """
    if len(request.operations) > settings.max_operations:
        raise PipelineError(
            f"Pipeline has {len(request.operations)} operations (max {settings.max_operations})"
        )

    pipeline = build_source(request.source, settings)
    bounded = request.source.bounded

    for op in request.operations:
        pipeline, bounded = _apply_operation(pipeline, bounded, op, settings)

    if not bounded:
        raise PipelineError("Pipeline is unbounded: add a 'take' operation after an unbounded source")
    return pipeline


def _apply_operation(pipeline: LazyIterable, bounded: bool, op: OperationSpec,
                     settings: EngineSettings):
    if op.type == OperationType.TAKE:
        if not bounded and op.count > settings.max_items:
            raise PipelineError(f"take({op.count}) on an unbounded source exceeds max {settings.max_items}")
        return pipeline.take(op.count), True
    if op.type == OperationType.DROP:
        if not bounded and op.count > settings.max_items:
            raise PipelineError(f"drop({op.count}) on an unbounded source exceeds max {settings.max_items}")
        return pipeline.drop(op.count), bounded
    if op.type == OperationType.ENUMERATE:
        return pipeline.enumerate(), bounded
    if op.type == OperationType.ELEM_INDICES:
        return pipeline.elem_indices(), bounded

    if op.type == OperationType.CHAIN:
        other = build_source(op.other, settings)
        return pipeline.chain(other), bounded and op.other.bounded
    if op.type == OperationType.ZIP:
        other = build_source(op.other, settings)
        return pipeline.zip(other), bounded or op.other.bounded

    fn = resolve_function(op.function.strip(), _OPERATION_GROUPS[op.type])
    if op.type == OperationType.MAP:
        return pipeline.map(fn), bounded
    if op.type == OperationType.FILTER:
        return pipeline.filter(fn), bounded
    if op.type == OperationType.FILTER_MAP:
        return pipeline.filter_map(fn), bounded
    if op.type == OperationType.TAKE_WHILE:
        return pipeline.take_while(fn), bounded
    return pipeline.drop_while(fn), bounded


def _plain(value: Any) -> Any:
    """Convert Pairs (possibly nested) into JSON-friendly lists"""
    if isinstance(value, Pair):
        return [_plain(value.first), _plain(value.second)]
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def evaluate_terminal(pipeline: LazyIterable, terminal: TerminalSpec,
                      settings: EngineSettings) -> Dict[str, Any]:
    """Consume the pipeline; returns result plus the reduce/collect extras"""
    try:
        if terminal.type == TerminalType.COLLECT:
            items = collect(pipeline, settings.collect_initial_capacity)
            return {"result": _plain(items), "length": len(items)}

        if terminal.type == TerminalType.COUNT:
            return {"result": count(pipeline)}

        fn = resolve_function(terminal.function.strip(), ("binary",))
        if terminal.type == TerminalType.REDUCE:
            outcome = reduce(pipeline, fn)
            return {
                "result": _plain(outcome.unwrap()) if outcome.is_present() else None,
                "present": outcome.is_present()
            }
        return {"result": _plain(fold(pipeline, terminal.initial, fn))}
    except (TypeError, AttributeError) as e:
        # Registered functions applied to incompatible element types
        raise PipelineError(f"Function failed on pipeline elements: {e}") from e


def run_pipeline(request: PipelineRequest, settings: EngineSettings) -> Dict[str, Any]:
    """Build and evaluate a pipeline, recording its performance"""
    operations_applied = [op.type.value for op in request.operations]
    pipeline = build_pipeline(request, settings)

    label = f"pipeline_{request.source.kind.value}_{request.terminal.type.value}"
    info = measure_performance(label, evaluate_terminal, pipeline, request.terminal, settings)
    logger.info(
        f"Evaluated {label} with {len(operations_applied)} operations "
        f"in {info['execution_time_ms']:.2f}ms"
    )

    outcome = info["result"]
    return {
        **outcome,
        "terminal": request.terminal.type,
        "operations_applied": operations_applied,
        "performance": {
            "processing_time_ms": info["execution_time_ms"],
            "memory_usage_mb": info["memory_usage_mb"],
            "operation": label
        }
    }

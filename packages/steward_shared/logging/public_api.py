"""Instrumentation for public service API methods.

One decorator fans invocation and completion events out to pluggable
concerns: structured logging, OpenTelemetry spans and OpenTelemetry metrics.
A failing concern is logged and counted but never breaks the wrapped call.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from opentelemetry import metrics as otel_metrics
from opentelemetry import trace as otel_trace
from opentelemetry.trace.status import Status, StatusCode

from . import fields
from .context import log_context

_INSTRUMENTATION_NAME = "steward.public_api"
_METRIC_CALLS_TOTAL = "steward_public_api_calls_total"
_METRIC_DURATION_MS = "steward_public_api_duration_ms"
_METRIC_ERRORS_TOTAL = "steward_public_api_errors_total"
_METRIC_INSTRUMENTATION_FAILURES_TOTAL = (
    "steward_public_api_instrumentation_failures_total"
)


@dataclass(frozen=True)
class InvocationContext:
    """What is known about one call before it runs."""

    component_id: str
    api_name: str
    trace_id: str | None
    envelope_id: str | None
    principal: str | None
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Outcome of one call."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]


class PublicApiInstrumentationConcern(Protocol):
    def on_invocation(self, context: InvocationContext) -> None: ...

    def on_completion(self, context: CompletionContext) -> None: ...


class PublicApiLoggingConcern:
    """One structured line at invocation and one at completion.

    Completion is logged at WARNING when the call failed.
    """

    def __init__(self, *, logger: logging.Logger) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(_invocation_fields(context)):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        payload = _invocation_fields(context.invocation)
        payload.update(
            {
                fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
                fields.SUCCESS: context.success,
                fields.DURATION_MS: context.duration_ms,
                fields.ERRORS: context.errors,
            }
        )
        with log_context(payload):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


class _Counter(Protocol):
    def add(self, amount: int | float, attributes: Mapping[str, str]) -> None: ...


class _Histogram(Protocol):
    def record(self, amount: float, attributes: Mapping[str, str]) -> None: ...


class _Span(Protocol):
    def set_attribute(self, key: str, value: object) -> None: ...

    def record_exception(self, exception: Exception) -> None: ...

    def set_status(self, status: object) -> None: ...


class _SpanScope(Protocol):
    def __enter__(self) -> _Span: ...

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None: ...


class _Tracer(Protocol):
    def start_as_current_span(self, name: str) -> _SpanScope: ...


@dataclass(frozen=True)
class _OpenSpan:
    scope: _SpanScope
    span: _Span


class PublicApiTracingConcern:
    """One span per call, named ``public_api.<component>.<method>``.

    Spans opened by nested decorated calls close innermost first.
    """

    def __init__(self, *, tracer: _Tracer) -> None:
        self._tracer = tracer
        self._open: ContextVar[tuple[_OpenSpan, ...]] = ContextVar(
            "steward_public_api_spans", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        scope = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = scope.__enter__()
        span.set_attribute(fields.COMPONENT_ID, context.component_id)
        span.set_attribute(fields.API_NAME, context.api_name)
        for key, value in (
            (fields.TRACE_ID, context.trace_id),
            (fields.ENVELOPE_ID, context.envelope_id),
            (fields.PRINCIPAL, context.principal),
        ):
            if value is not None:
                span.set_attribute(key, value)
        for key, value in context.references.items():
            span.set_attribute(f"reference.{key}", value)
        self._open.set((*self._open.get(), _OpenSpan(scope=scope, span=span)))

    def on_completion(self, context: CompletionContext) -> None:
        open_spans = self._open.get()
        if not open_spans:
            return
        current = open_spans[-1]
        self._open.set(open_spans[:-1])

        span = current.span
        span.set_attribute(fields.SUCCESS, context.success)
        span.set_attribute(fields.DURATION_MS, context.duration_ms)
        span.set_attribute(fields.OUTCOME, _outcome(context.success))
        span.set_attribute("errors.count", len(context.errors))
        if not context.success:
            span.set_status(Status(StatusCode.ERROR))
            if context.errors:
                span.record_exception(RuntimeError("; ".join(context.errors[:3])))
        current.scope.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Call count, latency and per-category failure counters."""

    def __init__(
        self,
        *,
        calls_total: _Counter,
        duration_ms: _Histogram,
        errors_total: _Counter,
    ) -> None:
        self._calls_total = calls_total
        self._duration_ms = duration_ms
        self._errors_total = errors_total

    def on_invocation(self, context: InvocationContext) -> None:
        del context

    def on_completion(self, context: CompletionContext) -> None:
        invocation = context.invocation
        attributes = {
            fields.COMPONENT_ID: invocation.component_id,
            fields.API_NAME: invocation.api_name,
            fields.OUTCOME: _outcome(context.success),
        }
        self._calls_total.add(1, attributes=attributes)
        self._duration_ms.record(context.duration_ms, attributes=attributes)
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors_total.add(
                1,
                attributes={
                    fields.COMPONENT_ID: invocation.component_id,
                    fields.API_NAME: invocation.api_name,
                    fields.ERROR_CATEGORY: category,
                },
            )


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: logging.Logger | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Instrument a public method with logging, tracing and metrics.

    ``id_fields`` names keyword arguments whose values are attached to every
    event (for example ``user_id``). Explicit ``concerns`` run before the
    default OpenTelemetry tracing and metrics concerns; ``logger`` adds the
    logging concern in front of them.
    """
    resolved: tuple[PublicApiInstrumentationConcern, ...] = (
        *(concerns or ()),
        _default_tracing_concern(),
        _default_metrics_concern(),
    )
    if logger is not None:
        resolved = (PublicApiLoggingConcern(logger=logger), *resolved)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        method_name = api_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            meta = kwargs.get("meta")
            invocation = InvocationContext(
                component_id=component_id,
                api_name=method_name,
                trace_id=_attr_or_none(meta, "trace_id"),
                envelope_id=_attr_or_none(meta, "envelope_id"),
                principal=_attr_or_none(meta, "principal"),
                references={
                    name: str(kwargs[name])
                    for name in id_fields
                    if kwargs.get(name) not in (None, "")
                },
            )
            _dispatch(resolved, "invocation", invocation, invocation, logger)

            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                completion = CompletionContext(
                    invocation=invocation,
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    errors=[f"{type(exc).__name__}: {exc}"],
                    error_categories=["internal"],
                )
                _dispatch(resolved, "completion", completion, invocation, logger)
                raise

            success, errors = _result_summary(result)
            completion = CompletionContext(
                invocation=invocation,
                success=success,
                duration_ms=_elapsed_ms(started),
                errors=errors,
                error_categories=_result_error_categories(result),
            )
            _dispatch(resolved, "completion", completion, invocation, logger)
            return result

        return wrapper

    return decorator


def _dispatch(
    concerns: Sequence[PublicApiInstrumentationConcern],
    stage: str,
    context: InvocationContext | CompletionContext,
    invocation: InvocationContext,
    logger: logging.Logger | None,
) -> None:
    for concern in concerns:
        try:
            if isinstance(context, CompletionContext):
                concern.on_completion(context)
            else:
                concern.on_invocation(context)
        except Exception as exc:  # noqa: BLE001
            _report_concern_failure(
                logger=logger,
                stage=stage,
                concern=type(concern).__name__,
                exc=exc,
                invocation=invocation,
            )


def _report_concern_failure(
    *,
    logger: logging.Logger | None,
    stage: str,
    concern: str,
    exc: Exception,
    invocation: InvocationContext,
) -> None:
    attributes = {
        fields.COMPONENT_ID: invocation.component_id,
        fields.API_NAME: invocation.api_name,
        fields.STAGE: stage,
        fields.CONCERN: concern,
    }
    _default_instruments().instrumentation_failures_total.add(1, attributes=attributes)
    if logger is None:
        return
    with log_context(
        {
            fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
            **attributes,
            fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
        }
    ):
        logger.warning("Public API instrumentation concern failed")


def _invocation_fields(context: InvocationContext) -> dict[str, object]:
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        fields.TRACE_ID: context.trace_id,
        fields.ENVELOPE_ID: context.envelope_id,
        fields.PRINCIPAL: context.principal,
        **context.references,
    }


def _outcome(success: bool) -> str:
    return "success" if success else "failure"


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


def _attr_or_none(obj: object | None, name: str) -> str | None:
    value = getattr(obj, name, None)
    if value in (None, ""):
        return None
    return str(value)


def _result_errors(result: object) -> tuple[Any, ...]:
    raw = getattr(result, "errors", ())
    return tuple(raw) if isinstance(raw, (list, tuple)) else ()


def _result_summary(result: object) -> tuple[bool, list[str]]:
    """Infer success and one-line error summaries from an envelope-like result."""
    summaries: list[str] = []
    for item in _result_errors(result):
        code = getattr(item, "code", "")
        message = getattr(item, "message", "")
        if message:
            summaries.append(f"{code}: {message}" if code else str(message))
    ok = getattr(result, "ok", None)
    if isinstance(ok, bool):
        return ok, summaries
    return len(summaries) == 0, summaries


def _result_error_categories(result: object) -> list[str]:
    categories: list[str] = []
    for item in _result_errors(result):
        raw = getattr(item, "category", None)
        category = getattr(raw, "value", raw)
        if category not in (None, ""):
            categories.append(str(category))
    return categories


@dataclass(frozen=True)
class _Instruments:
    calls_total: _Counter
    duration_ms: _Histogram
    errors_total: _Counter
    instrumentation_failures_total: _Counter


@lru_cache(maxsize=1)
def _default_instruments() -> _Instruments:
    meter = otel_metrics.get_meter(_INSTRUMENTATION_NAME)
    return _Instruments(
        calls_total=meter.create_counter(
            name=_METRIC_CALLS_TOTAL,
            description="Public API calls by component, method and outcome.",
            unit="1",
        ),
        duration_ms=meter.create_histogram(
            name=_METRIC_DURATION_MS,
            description="Public API call latency in milliseconds.",
            unit="ms",
        ),
        errors_total=meter.create_counter(
            name=_METRIC_ERRORS_TOTAL,
            description="Public API failures by error category.",
            unit="1",
        ),
        instrumentation_failures_total=meter.create_counter(
            name=_METRIC_INSTRUMENTATION_FAILURES_TOTAL,
            description="Instrumentation concern hook failures.",
            unit="1",
        ),
    )


@lru_cache(maxsize=1)
def _default_tracing_concern() -> PublicApiTracingConcern:
    return PublicApiTracingConcern(tracer=otel_trace.get_tracer(_INSTRUMENTATION_NAME))


@lru_cache(maxsize=1)
def _default_metrics_concern() -> PublicApiMetricsConcern:
    instruments = _default_instruments()
    return PublicApiMetricsConcern(
        calls_total=instruments.calls_total,
        duration_ms=instruments.duration_ms,
        errors_total=instruments.errors_total,
    )

"""Exception hierarchy shared across policy resolution, dispatch, and transport.

Policy violations (network disabled, plaintext HTTP to a host that is not
whitelisted) are raised as plain domain errors before any network activity.
Transport failures are raised by the transport collaborator as
:class:`TransportError` subclasses and converted by the dispatcher into a
:class:`StructuredError`: a composable error carrying a one-line summary and an
ordered list of labelled context fields, suitable for end-user display.
"""

from __future__ import annotations

import json
import traceback
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, NamedTuple, Optional, Sequence, Tuple, TypeVar, Union

from .formatting import FormatType, Renderer, plain_value

__all__ = [
    "GuardedFetchError",
    "ConfigurationError",
    "NetworkDisabledError",
    "UnsafeProtocolError",
    "RequestInfo",
    "ResponseInfo",
    "TransportError",
    "RequestFailed",
    "RequestTimeout",
    "HTTPStatusFailure",
    "FormattedValue",
    "ErrorField",
    "error_field",
    "Replace",
    "Derive",
    "FieldBuilder",
    "resolve_builder",
    "ErrorBuilder",
    "StructuredError",
]


class GuardedFetchError(RuntimeError):
    """Base exception for configuration, policy, and request failures."""


class ConfigurationError(GuardedFetchError):
    """Raised when configuration inputs are invalid."""


class NetworkDisabledError(GuardedFetchError):
    """Raised when the resolved network policy forbids the destination."""

    def __init__(self, target: str) -> None:
        super().__init__(f"Request to '{target}' has been blocked because of your configuration settings")
        self.target = target


class UnsafeProtocolError(GuardedFetchError):
    """Raised for plaintext HTTP requests to hosts missing from the whitelist."""

    def __init__(self, hostname: str) -> None:
        super().__init__(
            f"Unsafe http requests must be explicitly whitelisted in your configuration ({hostname})"
        )
        self.hostname = hostname


# ============================================================================
# Transport failures
# ============================================================================


@dataclass(frozen=True)
class RequestInfo:
    """What the transport knows about an issued request."""

    method: str
    url: str
    redirects: Tuple[str, ...] = ()
    retry_count: int = 0
    retry_limit: int = 0


@dataclass(frozen=True)
class ResponseInfo:
    """Status line of a received response."""

    status_code: int
    reason_phrase: str = ""


class TransportError(GuardedFetchError):
    """Raised by the transport collaborator when a call fails.

    Attributes:
        request: Request details, ``None`` when no request was issued.
        response: Status of the last response, ``None`` when none was received.
    """

    def __init__(
        self,
        message: str,
        *,
        request: Optional[RequestInfo] = None,
        response: Optional[ResponseInfo] = None,
    ) -> None:
        super().__init__(message)
        self.request = request
        self.response = response


class RequestFailed(TransportError):
    """The request could not be completed (connection, protocol, redirects)."""


class RequestTimeout(TransportError):
    """A transport timeout fired; ``phase`` names the stalled phase."""

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        request: Optional[RequestInfo] = None,
        response: Optional[ResponseInfo] = None,
    ) -> None:
        super().__init__(message, request=request, response=response)
        self.phase = phase


class HTTPStatusFailure(TransportError):
    """The server answered with an error status."""


# ============================================================================
# Structured errors
# ============================================================================


class FormattedValue(NamedTuple):
    """A value paired with the hint used to render it."""

    value: Any
    format_type: FormatType = FormatType.NO_HINT


@dataclass(frozen=True)
class ErrorField:
    """One labelled piece of context attached to a :class:`StructuredError`."""

    label: str
    value: FormattedValue


def error_field(label: str, value: Any, format_type: FormatType = FormatType.NO_HINT) -> ErrorField:
    """Build an :class:`ErrorField` from a raw value and its render hint."""
    return ErrorField(label=label, value=FormattedValue(value, format_type))


T = TypeVar("T")


@dataclass(frozen=True)
class Replace(Generic[T]):
    """Builder step replacing the previous value."""

    value: T


@dataclass(frozen=True)
class Derive(Generic[T]):
    """Builder step computing the new value from the previous one."""

    fn: Callable[[T], T]


FieldBuilder = Union[Replace[T], Derive[T]]


def resolve_builder(previous: T, builder: Optional[FieldBuilder[T]]) -> T:
    """Apply a single builder step to ``previous``.

    Examples:
        >>> resolve_builder("a", None)
        'a'
        >>> resolve_builder("a", Replace("b"))
        'b'
        >>> resolve_builder("a", Derive(lambda s: s + "!"))
        'a!'
    """
    if builder is None:
        return previous
    if isinstance(builder, Derive):
        return builder.fn(previous)
    return builder.value


@dataclass(frozen=True)
class ErrorBuilder:
    """Changes applied by :meth:`StructuredError.enhance`.

    ``include_stack`` left as ``None`` keeps a disabled stack disabled and
    re-captures it otherwise.
    """

    name: Optional[FieldBuilder[str]] = None
    summary: Optional[FieldBuilder[str]] = None
    fields: Sequence[ErrorField] = field(default_factory=tuple)
    include_stack: Optional[bool] = None


_MANAGED_ATTRIBUTES = frozenset(
    {"name", "summary", "fields", "include_stack", "stack", "render_context", "args", "detached_fields"}
)


def _describe_non_error(value: Any) -> str:
    try:
        encoded = json.dumps(value)
    except (TypeError, ValueError):
        encoded = repr(value)
    return f"Non-error exception {encoded} of type {type(value).__name__}"


class StructuredError(GuardedFetchError):
    """Composable error with a summary and ordered, labelled context fields.

    The message exposed to users is always the summary followed by one
    ``"\\n    label: value"`` line per field, in insertion order, until
    :meth:`set_message` replaces it.

    Args:
        message_or_error: A message, an exception to wrap (structured or not),
            or any other value caught as a failure.
        builder: Changes applied on top of the wrapped state.
        render_context: Renderer used to pretty-print fields; when omitted the
            wrapped error's renderer is inherited, if any.

    Examples:
        >>> error = StructuredError("boom", ErrorBuilder(fields=[error_field("X", "1")]))
        >>> error.render_message()
        'boom\\n    X: 1'
    """

    def __init__(
        self,
        message_or_error: object,
        builder: Optional[ErrorBuilder] = None,
        render_context: Optional[Renderer] = None,
    ) -> None:
        super().__init__(message_or_error if isinstance(message_or_error, str) else "")
        self.name = "Error"
        self.summary = ""
        self.fields: Tuple[ErrorField, ...] = ()
        self.detached_fields = 0
        self.include_stack = True
        self.stack: Optional[traceback.StackSummary] = None
        self.render_context: Optional[Renderer] = render_context

        if isinstance(message_or_error, str):
            self.summary = message_or_error
        elif isinstance(message_or_error, StructuredError):
            wrapped = message_or_error
            self.name = wrapped.name
            self.summary = wrapped.summary
            self.fields = wrapped.fields
            self.detached_fields = wrapped.detached_fields
            self.include_stack = wrapped.include_stack
            if render_context is None:
                self.render_context = wrapped.render_context
            self._copy_attributes(wrapped)
            self.__cause__ = wrapped
        elif isinstance(message_or_error, BaseException):
            wrapped_exc = message_or_error
            self.name = type(wrapped_exc).__name__
            self.summary = str(wrapped_exc) or type(wrapped_exc).__name__
            self._copy_attributes(wrapped_exc)
            self.__cause__ = wrapped_exc
        else:
            self.summary = _describe_non_error(message_or_error)
            self.args = (self.summary,)
            return

        StructuredError.enhance(self, builder or ErrorBuilder())

    def _copy_attributes(self, source: BaseException) -> None:
        for key, value in vars(source).items():
            if key not in _MANAGED_ATTRIBUTES and not key.startswith("__"):
                setattr(self, key, value)

    @staticmethod
    def enhance(error: "StructuredError", builder: ErrorBuilder) -> None:
        """Merge ``builder`` into ``error`` in place."""
        error.name = resolve_builder(error.name, builder.name)
        error.summary = resolve_builder(error.summary, builder.summary)
        for new_field in builder.fields:
            error._add_field(new_field)

        if builder.include_stack is False or (builder.include_stack is None and not error.include_stack):
            error.stack = None
            error.include_stack = False
            error.__traceback__ = None
        else:
            error.stack = traceback.StackSummary.from_list(traceback.extract_stack()[:-1])
            error.include_stack = True
        error.args = (error.summary,)

    def _add_field(self, new_field: ErrorField) -> None:
        self.fields = (*self.fields, new_field)

    def _render_field(self, item: ErrorField) -> str:
        value, format_type = item.value
        if self.render_context is not None:
            label = self.render_context.pretty(item.label, FormatType.CODE)
            return f"{label}: {self.render_context.pretty(value, format_type)}"
        return f"{plain_value(item.label, FormatType.CODE)}: {plain_value(value, format_type)}"

    def stringified_fields(self) -> str:
        return "".join(f"\n    {self._render_field(item)}" for item in self.fields[self.detached_fields :])

    def render_message(self) -> str:
        """Return the summary followed by the rendered fields."""
        return self.summary + self.stringified_fields()

    def set_message(self, message: str) -> None:
        """Replace the rendered message with ``message``.

        Field text already present in ``message`` is stripped. Existing fields
        stay in :attr:`fields` but are no longer rendered; fields added later are.
        """
        self.summary = message.replace(self.stringified_fields(), "")
        self.detached_fields = len(self.fields)
        self.args = (self.summary,)

    def format_for_display(self) -> str:
        """Render ``name: message``, followed by the captured stack when enabled."""
        text = f"{self.name}: {self.render_message()}"
        if self.include_stack and self.stack:
            text += "\n" + "".join(self.stack.format()).rstrip("\n")
        return text

    def __str__(self) -> str:
        return self.render_message()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, summary={self.summary!r}, fields={len(self.fields)})"

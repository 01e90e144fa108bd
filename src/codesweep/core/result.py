"""Lightweight, typed Result container for step outcomes.

Motivation
----------
Cleanup steps fail for two very different reasons: an *expected* failure (a
config file is malformed, a tool reports problems, validation fails) and a
*fatal* one (a required step failed, the run must stop). Instead of routing
both through exceptions, step work and the step runner return a tagged value:

- ``Ok(value)``          the step produced ``value``;
- ``StepFailed(reason)`` the step failed, the run may continue;
- ``Fatal(reason)``      the run must abort.

The API mirrors a classic ``Result``: ``is_ok`` / ``unwrap`` / ``map`` /
``flat_map`` / ``or_else`` / ``get_or``, plus ``is_failed`` / ``is_fatal`` and
``reason()`` for the two failure variants.

Example
-------
>>> from codesweep.core.result import ok, failed, Result
>>> def parse_int(x: str) -> Result[int]:
...     return ok(int(x)) if x.isdigit() else failed("not a digit")
>>> ok("42").flat_map(parse_int).unwrap()
42
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar, cast, overload

T = TypeVar("T")
U = TypeVar("U")


class Result(Generic[T]):
    """Sum type: ``Ok[T]``, ``StepFailed`` or ``Fatal``."""

    # ----- Introspection -----------------------------------------------------
    def is_ok(self) -> bool:
        """Return ``True`` if this is an :class:`Ok` value."""
        return isinstance(self, Ok)

    def is_err(self) -> bool:
        """Return ``True`` for either failure variant."""
        return isinstance(self, StepFailed | Fatal)

    def is_failed(self) -> bool:
        """Return ``True`` if this is a recoverable :class:`StepFailed`."""
        return isinstance(self, StepFailed)

    def is_fatal(self) -> bool:
        """Return ``True`` if this is a :class:`Fatal` value."""
        return isinstance(self, Fatal)

    # ----- Unwraps -----------------------------------------------------------
    @overload
    def unwrap(self) -> T: ...
    @overload
    def unwrap(self, default: T) -> T: ...

    def unwrap(self, default: T | None = None) -> T:
        """Return the inner value if ``Ok``, else raise or return ``default``.

        Parameters
        ----------
        default:
            Optional fallback value to return on failure. If omitted, a
            :class:`RuntimeError` is raised.
        """
        if isinstance(self, Ok):
            return cast(Ok[T], self).value
        if default is not None:
            return default
        raise RuntimeError(f"Attempted to unwrap a failure: {self!r}")

    def expect(self, msg: str) -> T:
        """Return the inner value if ``Ok``, else raise ``RuntimeError(msg)``."""
        if isinstance(self, Ok):
            return cast(Ok[T], self).value
        raise RuntimeError(msg)

    def reason(self) -> str:
        """Return the failure reason; raise on ``Ok``."""
        if isinstance(self, StepFailed | Fatal):
            return self.error
        raise RuntimeError(f"Attempted to read the reason of Ok: {self!r}")

    # ----- Combinators -------------------------------------------------------
    def map(self, fn: Callable[[T], U]) -> Result[U]:
        """Apply ``fn`` to the success value; propagate failures unchanged."""
        if isinstance(self, Ok):
            return Ok(fn(cast(Ok[T], self).value))
        return cast(Result[U], self)

    def flat_map(self, fn: Callable[[T], Result[U]]) -> Result[U]:
        """Chain computations that already return a :class:`Result`."""
        if isinstance(self, Ok):
            return fn(cast(Ok[T], self).value)
        return cast(Result[U], self)

    def escalate(self, prefix: str = "") -> Result[T]:
        """Turn a ``StepFailed`` into ``Fatal`` (optionally prefixing the reason)."""
        if isinstance(self, StepFailed):
            return Fatal(f"{prefix}{self.error}")
        return self

    # ----- Utilities ---------------------------------------------------------
    def or_else(self, fallback: Callable[[str], Result[T]]) -> Result[T]:
        """On ``StepFailed``, call ``fallback(reason)``; ``Fatal`` is never recovered."""
        if isinstance(self, StepFailed):
            return fallback(self.error)
        return self

    def get_or(self, default: T) -> T:
        """Return the success value or a default on failure."""
        return self.unwrap(default)

    # ----- Dunder helpers ----------------------------------------------------
    def __repr__(self) -> str:  # pragma: no cover - trivial representation
        if isinstance(self, Ok):
            return f"Ok({cast(Ok[T], self).value!r})"
        if isinstance(self, StepFailed):
            return f"StepFailed({self.error!r})"
        if isinstance(self, Fatal):
            return f"Fatal({self.error!r})"
        return "Result(?)"


@dataclass(frozen=True, repr=False)
class Ok(Result[T]):
    """Successful result wrapping a value of type ``T``."""

    value: T


@dataclass(frozen=True, repr=False)
class StepFailed(Result[T]):
    """Recoverable failure: the step failed but the run continues."""

    error: str


@dataclass(frozen=True, repr=False)
class Fatal(Result[T]):
    """Unrecoverable failure: the run must abort."""

    error: str


# ----- Convenience constructors ----------------------------------------------
def ok(value: T) -> Result[T]:
    """Construct :class:`Ok` with better type inference at call sites."""
    return Ok(value)


def failed(error: str) -> Result[T]:
    """Construct :class:`StepFailed`."""
    return StepFailed(error)


def fatal(error: str) -> Result[T]:
    """Construct :class:`Fatal`."""
    return Fatal(error)


def never(msg: str) -> NoReturn:
    """Raise a ``RuntimeError(msg)`` to mark a non-returning code path."""
    raise RuntimeError(msg)


__all__ = ["Result", "Ok", "StepFailed", "Fatal", "ok", "failed", "fatal", "never"]

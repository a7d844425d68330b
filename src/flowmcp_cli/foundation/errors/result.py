"""Ok/Err results for the resolution and execution stages.

Stages hand back ``Result[T, FlowError]`` instead of raising; the facade
turns an Err into a failure dict (or a FlowException via ``expect``):

    >>> parsed = Ok({"limit": 5}).map(lambda p: {**p, "page": 1})
    >>> parsed.unwrap()
    {'limit': 5, 'page': 1}
    >>> Err("bad ref").map(len).unwrap_err()
    'bad ref'
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar, cast

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")


class Result(Generic[T, E]):
    """Either a success value or an error, never both. Build with Ok()/Err()."""

    __slots__ = ("_inner", "_ok")

    def __init__(self, inner: T | E, ok: bool) -> None:
        self._inner = inner
        self._ok = ok

    def is_ok(self) -> bool:
        return self._ok

    def is_err(self) -> bool:
        return not self._ok

    def unwrap(self) -> T:
        """Success value.

        Raises:
            RuntimeError: On an Err
        """
        if not self._ok:
            raise RuntimeError(f"unwrap() on Err: {self._inner!r}")
        return cast(T, self._inner)

    def unwrap_err(self) -> E:
        """Error value.

        Raises:
            RuntimeError: On an Ok
        """
        if self._ok:
            raise RuntimeError(f"unwrap_err() on Ok: {self._inner!r}")
        return cast(E, self._inner)

    # ─────────────────────────────────────────────────────────────────
    # Chaining
    # ─────────────────────────────────────────────────────────────────

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        return Ok(f(cast(T, self._inner))) if self._ok else Err(cast(E, self._inner))

    def map_err(self, f: Callable[[E], F]) -> Result[T, F]:
        return Err(f(cast(E, self._inner))) if not self._ok else Ok(cast(T, self._inner))

    def flat_map(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Run the next stage only after a success."""
        return f(cast(T, self._inner)) if self._ok else Err(cast(E, self._inner))

    def match(self, ok: Callable[[T], U], err: Callable[[E], U]) -> U:
        return ok(cast(T, self._inner)) if self._ok else err(cast(E, self._inner))

    def __bool__(self) -> bool:
        return self._ok

    def __repr__(self) -> str:
        return f"{'Ok' if self._ok else 'Err'}({self._inner!r})"


def Ok(value: T) -> Result[T, E]:  # noqa: N802
    return Result(value, True)


def Err(error: E) -> Result[T, E]:  # noqa: N802
    return Result(error, False)


def collect_results(results: list[Result[T, E]]) -> Result[list[T], list[E]]:
    """All values, or every error when at least one stage failed."""
    values = [r.unwrap() for r in results if r.is_ok()]
    errors = [r.unwrap_err() for r in results if r.is_err()]
    return Err(errors) if errors else Ok(values)

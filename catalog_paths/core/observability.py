import uuid
from contextlib import contextmanager
from contextvars import ContextVar


CORRELATION_HEADER = "X-Correlation-ID"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current correlation id if present."""

    return _correlation_id.get()


def new_correlation_id(prefix: str | None = None) -> str:
    seed = prefix or "corr"
    return f"{seed}-{uuid.uuid4().hex[:12]}"


@contextmanager
def correlation_context(correlation_id: str | None = None, *, prefix: str | None = None):
    """Bind a correlation id for the duration of the block.

    An explicit id wins; otherwise the id already bound to the context is kept,
    and a fresh one is generated only when nothing is bound yet.
    """

    value = correlation_id or _correlation_id.get() or new_correlation_id(prefix)
    token = _correlation_id.set(value)
    try:
        yield value
    finally:
        _correlation_id.reset(token)

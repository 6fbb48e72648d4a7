import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)

_current_span: ContextVar[Optional['Span']] = ContextVar(
    'progression_span', default=None
)


@dataclass
class Span:
    '''A timed unit of engine work.'''

    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    parent: Optional['Span'] = None
    started: float = field(default_factory=time.perf_counter)
    ended: Optional[float] = None
    error: Optional[str] = None

    @property
    def duration_ms(self) -> Optional[float]:
        if self.ended is None:
            return None
        return (self.ended - self.started) * 1000

    @property
    def depth(self) -> int:
        return 0 if self.parent is None else self.parent.depth + 1

    def set(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def close(self) -> None:
        self.ended = time.perf_counter()
        attrs = ', '.join(f'{k}={v}' for k, v in self.attributes.items())
        status = f' error={self.error}' if self.error else ''
        logger.debug(
            f'{"  " * self.depth}{self.name}: {self.duration_ms:.2f}ms '
            f'[{attrs}]{status}'
        )


@contextmanager
def trace_span(
    name: str, attributes: Optional[Dict[str, Any]] = None
) -> Iterator[Span]:
    '''Time a block and log it on exit, nesting under the active span.

    Example:
        with trace_span('engine.apply_xp', {'user_id': user_id}) as span:
            span.set('unlocked', 2)
    '''
    span = Span(
        name=name, attributes=dict(attributes or {}), parent=_current_span.get()
    )
    token = _current_span.set(span)
    try:
        yield span
    except Exception as e:
        span.error = type(e).__name__
        raise
    finally:
        span.close()
        _current_span.reset(token)


def current_span() -> Optional[Span]:
    return _current_span.get()

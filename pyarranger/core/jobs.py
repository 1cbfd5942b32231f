"""
Offline render jobs.

DSP work (decoding, effect renders, crossfade merges, mixdowns) runs on a
single background worker so the caller's thread never blocks on it. Jobs are
plain request/response: a job reads immutable inputs and returns a new value.
They cannot be cancelled; a caller that no longer wants a result drops it.
"""
from __future__ import annotations
import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger("PyArranger")

T = TypeVar('T')


class RenderJob:
    """Handle on a submitted job."""
    __slots__ = ('name', '_future')

    def __init__(self, name: str, future: Future):
        self.name = name
        self._future = future

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def future(self) -> Future:
        return self._future

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block until the job finishes; re-raises the job's exception."""
        return self._future.result(timeout)

    def __repr__(self) -> str:
        return f"RenderJob({self.name!r}, done={self.done})"


class RenderJobRunner:
    """Single-worker executor for offline audio renders."""

    def __init__(self, name: str = "PyArrangerRender"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._lock = threading.Lock()
        self._pending = 0
        self._closed = False

    @property
    def pending(self) -> int:
        """Jobs submitted but not yet finished."""
        return self._pending

    def submit(self, fn: Callable[..., T], *args: Any, name: Optional[str] = None, **kwargs: Any) -> RenderJob:
        if self._closed:
            raise RuntimeError("Render job runner is shut down")
        job_name = name or getattr(fn, '__name__', 'job')

        def run() -> T:
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                logger.warning("Render job %s failed: %s", job_name, e)
                raise
            finally:
                with self._lock:
                    self._pending -= 1

        with self._lock:
            self._pending += 1
        logger.debug("Submitting render job %s", job_name)
        return RenderJob(job_name, self._executor.submit(run))

    async def run(self, fn: Callable[..., T], *args: Any, name: Optional[str] = None, **kwargs: Any) -> T:
        """Submit a job and await its result from the running event loop."""
        job = self.submit(fn, *args, name=name, **kwargs)
        return await asyncio.wrap_future(job.future)

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)

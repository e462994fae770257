import functools
import time
from typing import Any, Callable, Coroutine

from recipe_capture.core.logging import LoggerRegistry
from recipe_capture.domain.models import CaptureStage
from recipe_capture.domain.result import Result


def instrument_stage(
    stage: CaptureStage,
) -> Callable[[Callable[..., Coroutine[Any, Any, Result]]], Callable[..., Coroutine[Any, Any, Result]]]:
    """
    A decorator for instrumenting one stage of a capture run.

    The wrapped coroutine receives the run's ``CaptureRun`` as its first
    argument after ``self``. The decorator:
    - Moves the run into ``stage`` before the body executes, so a fault can
      be attributed to the stage that raised it.
    - Measures and logs the execution time and the Result status of the stage.

    Exceptions are not caught here; they belong to the orchestrator's
    outer boundary.
    """

    def decorator(
        func: Callable[..., Coroutine[Any, Any, Result]]
    ) -> Callable[..., Coroutine[Any, Any, Result]]:
        @functools.wraps(func)
        async def wrapper(self: Any, run: Any, *args: Any, **kwargs: Any) -> Result:
            run.stage = stage
            log = LoggerRegistry.get_stage_logger(stage.value, parent="capture").bind(
                capture_id=run.capture_id
            )
            log.debug("capture.stage.start")
            start_time = time.perf_counter()

            result = await func(self, run, *args, **kwargs)

            duration_ms = round((time.perf_counter() - start_time) * 1000)
            if result.is_success:
                log.info("capture.stage.finished", duration_ms=duration_ms)
            else:
                log.warning(
                    "capture.stage.failed",
                    duration_ms=duration_ms,
                    error=result.error,
                    error_kind=result.kind.value,
                )
            return result

        return wrapper

    return decorator

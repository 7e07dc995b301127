from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

logger = logging.getLogger("flovo.pipeline")


@dataclass
class PipelineStep:
    """Named step of the chat pipeline."""
    name: str
    fn: Callable[[Any], None]
    skip_if: Optional[Callable[[Any], bool]] = None
    always_run: bool = False


class StepRunner:
    """Run pipeline steps in order over one mutable context."""

    def __init__(self, steps: List[PipelineStep]) -> None:
        self._steps = steps

    def run(self, context: Any) -> None:
        """Purpose: Execute steps in order with optional skip/always-run rules.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Invokes step functions that may mutate context.
        Dependencies: PipelineStep.fn and PipelineStep.skip_if.
        Failure Modes: Exceptions in step functions propagate to the caller.
        If Removed: The chat pipeline cannot run.
        Testing Notes: Verify skip_if and always_run with simple steps.
        """
        for step in self._steps:
            if not step.always_run and step.skip_if and step.skip_if(context):
                logger.debug("pipeline step=%s skipped", step.name)
                continue
            step.fn(context)

"""Stage pipelines with generic warm-up bookkeeping.

Every indicator is a Pipeline: an ordered list of stages, each consuming
the previous stage's output and declaring how many leading points it
discards. The pipeline's warm-up is the sum of its stages' warm-ups, which
is exactly the offset the output needs to land back on the bar timeline.

Stages that fan out into parallel branches (e.g. DEMA's EMA and EMA-of-EMA)
are built with `combine`: branches run on the same input, each is cut to
the common tail and the results are merged. The fan-out stage's warm-up is
the largest branch warm-up.

Usage:
    dema = Pipeline("dema", [
        window_stage("ema", ema, 10),
        combine("dema", [identity(), window_stage("ema", ema, 10)],
                lambda e1, e2: 2 * e1 - e2),
    ])
    dema.warmup          # 18
    dema.run(closes)     # len(closes) - 18 values
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence, Union

import numpy as np

from .errors import PipelineError
from .primitives import as_array, check_period, empty_output, tail_align


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """One step of a pipeline.

    Attributes:
        name: Label used in error messages and repr
        func: Maps an array of n rows to an array of n - warmup rows
        warmup: Leading rows the stage consumes before its first output
    """

    name: str
    func: Callable[[np.ndarray], np.ndarray]
    warmup: int = 0

    def __post_init__(self):
        if self.warmup < 0:
            raise ValueError(f"Stage {self.name} has negative warm-up {self.warmup}")


class Pipeline:
    """Ordered chain of stages over one or more bar fields.

    Attributes:
        name: Pipeline label
        stages: Stages in execution order
        inputs: Bar fields fed to the first stage, in column order
        outputs: Names of the output lines (one for scalar indicators)
    """

    def __init__(
        self,
        name: str,
        stages: Iterable[Stage],
        inputs: Sequence[str] = ("close",),
        outputs: Sequence[str] = ("value",),
    ):
        self.name = name
        self.stages = tuple(stages)
        self.inputs = tuple(inputs)
        self.outputs = tuple(outputs)

    def __repr__(self) -> str:
        steps = " -> ".join(f"{s.name}[{s.warmup}]" for s in self.stages) or "identity"
        return f"Pipeline({self.name}: {steps})"

    @property
    def warmup(self) -> int:
        """Total leading points consumed: the sum over all stages."""
        return sum(stage.warmup for stage in self.stages)

    @property
    def min_length(self) -> int:
        """Fewest input points that produce at least one output."""
        return self.warmup + 1

    @property
    def width(self) -> int:
        return len(self.outputs)

    def output_length(self, n: int) -> int:
        return max(n - self.warmup, 0)

    def describe(self) -> list[tuple[str, int]]:
        return [(stage.name, stage.warmup) for stage in self.stages]

    def run(self, *columns) -> np.ndarray:
        """Run the pipeline on input columns ordered as `self.inputs`.

        Returns:
            Array of len(input) - warmup rows; (L,) for one output line,
            (L, k) for k lines. Empty when the input is shorter than
            min_length.

        Raises:
            PipelineError: If a stage emits a length other than declared
        """
        data = self._prepare(columns)
        if len(data) < self.min_length:
            logger.debug(
                f"{self.name}: {len(data)} points < minimum {self.min_length}, empty output"
            )
            return empty_output(self.width)
        return self.process(data)

    def process(self, data: np.ndarray) -> np.ndarray:
        """Run the stages on already prepared data (no length pre-check)."""
        for stage in self.stages:
            expected = len(data) - stage.warmup
            result = as_array(stage.func(data))
            if len(result) != expected:
                raise PipelineError(
                    f"Stage '{stage.name}' of {self.name} emitted {len(result)} rows "
                    f"from {len(data)}, expected {expected}"
                )
            data = result
        return data

    def _prepare(self, columns) -> np.ndarray:
        if len(columns) != len(self.inputs):
            raise ValueError(
                f"{self.name} expects {len(self.inputs)} input column(s) {self.inputs}, "
                f"got {len(columns)}"
            )
        arrays = [as_array(c) for c in columns]
        if len({len(a) for a in arrays}) > 1:
            raise ValueError(f"{self.name} input columns differ in length")
        if len(arrays) == 1:
            return arrays[0]
        return np.column_stack(arrays)

    def then(self, *others: "Pipeline", name: str = None) -> "Pipeline":
        """Chain further pipelines after this one; outputs come from the last."""
        stages = list(self.stages)
        for other in others:
            stages.extend(other.stages)
        return Pipeline(
            name or self.name,
            stages,
            inputs=self.inputs,
            outputs=others[-1].outputs if others else self.outputs,
        )

    def as_stage(self, name: str = None) -> Stage:
        """Wrap the whole pipeline as a single stage."""
        return Stage(name or self.name, self.process, self.warmup)


Branch = Union[Pipeline, Stage]


def _as_pipeline(branch: Branch) -> Pipeline:
    if isinstance(branch, Stage):
        return Pipeline(branch.name, [branch])
    return branch


def identity() -> Pipeline:
    """Branch that passes its input through unchanged."""
    return Pipeline("identity", [])


def column(index: int, name: str = None) -> Stage:
    """Select one column of a multi-field input."""
    return Stage(name or f"column[{index}]", lambda data: data[:, index])


def window_stage(name: str, func: Callable, period: int) -> Stage:
    """Stage for a trailing-window reduction consuming period - 1 points."""
    period = check_period(period)
    return Stage(f"{name}({period})", lambda data: func(data, period), period - 1)


def repeat(stage: Stage, times: int) -> list[Stage]:
    """The same stage chained `times` times."""
    return [stage] * times


def combine(name: str, branches: Sequence[Branch], combiner: Callable[..., np.ndarray]) -> Stage:
    """Fan out into parallel branches and merge their overlapping tails.

    Args:
        name: Stage label
        branches: Pipelines or stages, each run on the same input
        combiner: Receives one tail-aligned array per branch

    Returns:
        Stage whose warm-up is the largest branch warm-up
    """
    branches = tuple(_as_pipeline(b) for b in branches)
    if not branches:
        raise ValueError(f"combine({name}) needs at least one branch")

    def run(data):
        results = tail_align(*(branch.process(data) for branch in branches))
        return combiner(*results)

    return Stage(name, run, max(branch.warmup for branch in branches))

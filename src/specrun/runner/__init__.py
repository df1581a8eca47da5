"""Tree walking runner and its fluent builder."""

from specrun.runner.builder import SpecRunnerBuilder
from specrun.runner.runner import SpecRunner

__all__ = ["SpecRunner", "SpecRunnerBuilder"]

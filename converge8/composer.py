"""
The composer runs named, independent checks in order and records each one's
outcome. A failing check never stops its siblings.
"""

# Standard
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence
import time
import uuid

# First Party
import alog

# Local
from .exceptions import ScenarioFailedError

log = alog.use_channel("SCNRO")


@dataclass(frozen=True)
class Check:
    """A named, parameterless action. The action signals failure by raising. An
    action that returns a ScenarioResult has that result attached as nested
    results.
    """

    name: str
    action: Callable[[], Any]

    def __call__(self):
        return self.action()


@dataclass
class CheckResult:
    """The recorded outcome of a single check"""

    name: str
    passed: bool
    message: str = ""
    duration: float = 0.0
    error: Optional[Exception] = None
    children: List["CheckResult"] = field(default_factory=list)

    def describe(self, indent: int = 0) -> str:
        """Render this result and any nested results as indented lines"""
        mark = "PASS" if self.passed else "FAIL"
        line = f"{'  ' * indent}[{mark}] {self.name}"
        if self.message:
            line += f": {self.message}"
        lines = [line] + [child.describe(indent + 1) for child in self.children]
        return "\n".join(lines)


@dataclass
class ScenarioResult:
    """Aggregate of a scenario run: failed if any check failed"""

    name: str
    scenario_id: str
    results: List[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def failures(self) -> List[CheckResult]:
        return [result for result in self.results if not result.passed]

    def describe(self) -> str:
        header = f"Scenario {self.name} [{'PASS' if self.passed else 'FAIL'}]"
        return "\n".join([header] + [result.describe(1) for result in self.results])

    def raise_for_failures(self):
        """Raise a ScenarioFailedError naming every failed check"""
        if not self.passed:
            raise ScenarioFailedError(
                f"{len(self.failures)} check(s) failed in {self.name}:\n"
                + self.describe(),
                failures=self.failures,
            )


class Scenario:
    """A flat, ordered sequence of independent checks"""

    def __init__(self, name: str, checks: Sequence[Check]):
        self.name = name
        self.checks = list(checks)

    def run(self, scenario_id: Optional[str] = None) -> ScenarioResult:
        """Run every check in order and collect the results

        Args:
            scenario_id:  Optional[str]
                Identifier attached to the logs of this run. Generated if not
                given.

        Returns:
            result:  ScenarioResult
                One CheckResult per check, in order
        """
        scenario_id = scenario_id or str(uuid.uuid4())
        log.info("Running scenario [%s] (%s)", self.name, scenario_id)
        result = ScenarioResult(name=self.name, scenario_id=scenario_id)
        for check in self.checks:
            result.results.append(self._run_check(check))
        log.info(
            "Scenario [%s] finished with %d/%d checks passing",
            self.name,
            len(result.results) - len(result.failures),
            len(result.results),
        )
        return result

    def as_check(self) -> Check:
        """Wrap this scenario as a single check so scenarios can nest. The nested
        results are attached to the wrapping check's result.
        """
        return Check(name=self.name, action=self.run)

    ## Implementation Details ##################################################

    @staticmethod
    def _run_check(check: Check) -> CheckResult:
        start = time.monotonic()
        with alog.ContextLog(log.debug, "Check [%s]", check.name):
            try:
                outcome = check()

            # Any failure is recorded here and never reaches sibling checks
            except Exception as err:  # pylint: disable=broad-except
                log.warning("Check [%s] failed: %s", check.name, err, exc_info=True)
                return CheckResult(
                    name=check.name,
                    passed=False,
                    message=f"{type(err).__name__}: {err}",
                    duration=time.monotonic() - start,
                    error=err,
                )

        children = []
        if isinstance(outcome, ScenarioResult):
            children = outcome.results
            if not outcome.passed:
                log.warning("Check [%s] failed: nested checks failed", check.name)
                return CheckResult(
                    name=check.name,
                    passed=False,
                    message=f"{len(outcome.failures)} nested check(s) failed",
                    duration=time.monotonic() - start,
                    children=children,
                )

        log.info("Check [%s] passed", check.name)
        return CheckResult(
            name=check.name,
            passed=True,
            duration=time.monotonic() - start,
            children=children,
        )

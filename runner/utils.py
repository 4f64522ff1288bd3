from __future__ import annotations

from runner.types import StepResult


def summarize(steps: list[StepResult]) -> tuple[dict, int]:
    """Compute summary dict and an exit code from the step outcomes."""
    failed = [s for s in steps if not s.ok]
    summary = {
        "component": "runner",
        "event": "summary",
        "steps": [
            {"name": s.name, "ok": s.ok, "elapsed_ms": round(s.elapsed_ms, 2), **s.detail}
            for s in steps
        ],
        "passed": len(steps) - len(failed),
        "failed": len(failed),
    }
    exit_code = 0 if steps and not failed else 1
    return summary, exit_code

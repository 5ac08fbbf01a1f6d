from support_mas.evaluation.judge import (
    JUDGE_SCENARIOS,
    JudgeHarness,
    JudgeReport,
    JudgeResult,
    JudgeScenario,
    format_report,
)

__all__ = [
    "JudgeHarness",
    "JudgeReport",
    "JudgeResult",
    "JudgeScenario",
    "JUDGE_SCENARIOS",
    "format_report",
]

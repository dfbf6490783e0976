"""Default model selection policy and its startup validation."""

from __future__ import annotations

from collections.abc import Mapping

from fishcap.errors import PolicyConfigurationError

from .models import ModelPolicy, Task

_FLASH = "gemini-2.0-flash"
_FLASH_LEGACY = "gemini-1.5-flash"

DEFAULT_POLICY: dict[Task, ModelPolicy] = {
    Task.step1_explain: ModelPolicy(
        primary="gemini-2.0-flash-lite-preview-02-05",
        fallbacks=(_FLASH, _FLASH_LEGACY),
    ),
    Task.step2_synthesize: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.step3_quiz: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.step4_diagnose: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.concepts: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.outline: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.slides_explain_batch: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.feedback: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.cornell: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.grade_short_answer: ModelPolicy(primary=_FLASH, fallbacks=(_FLASH_LEGACY,)),
    Task.embedding: ModelPolicy(primary="text-embedding-004"),
}


def validate_policy_table(table: Mapping[Task, ModelPolicy]) -> None:
    """Raise ``PolicyConfigurationError`` unless every task has a usable model list."""
    missing = [task.value for task in Task if task not in table]
    if missing:
        raise PolicyConfigurationError(
            f"Model policy is missing tasks: {', '.join(sorted(missing))}"
        )

    for task, policy in table.items():
        blank = [model for model in policy.models if not model.strip()]
        if blank:
            raise PolicyConfigurationError(
                f"Model policy for task '{task.value}' contains a blank model identifier."
            )

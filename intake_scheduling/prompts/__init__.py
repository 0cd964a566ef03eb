from intake_scheduling.prompts.scheduling_prompts import (
    SCHEDULING_SYSTEM_PROMPT,
    build_messages,
    build_user_prompt,
)

__all__ = ["SCHEDULING_SYSTEM_PROMPT", "build_messages", "build_user_prompt"]

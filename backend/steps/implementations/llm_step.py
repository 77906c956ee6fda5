"""
LLM step implementations.

- llm.generate: free-form generation from an interpolated prompt
- llm.classify: pick exactly one category for an input text

Both prepend the user contexts attached to the run so the model sees the
user's standing instructions before the task.
"""

from typing import Any, Dict, Optional, Type

from core.constants import RESULT_DISPLAY_LIMIT
from integrations.llm_client import get_llm_client
from steps.base_step import BaseStep
from workflow.context import ExecutionContext
from workflow.interpolation import truncate_for_display


def with_user_contexts(prompt: str, user_contexts: list) -> str:
    """Prefix a prompt with the run's user contexts, if any."""
    if not user_contexts:
        return prompt
    joined = "\n\n".join(user_contexts)
    return f"=== IMPORTANT USER CONTEXT ===\n{joined}\n\n=== TASK ===\n{prompt}"


class BaseLLMStep(BaseStep):

    async def generate(self, prompt: str, ctx: ExecutionContext) -> str:
        client = ctx.llm_client or get_llm_client()
        return await client.generate(prompt, ctx.llm_config)


class GenerateLLMStep(BaseLLMStep):
    """Send a prompt to the configured LLM and store the response."""

    step_type = "llm.generate"
    display_name = "LLM Generate"
    description = "Generate text with the configured LLM"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        prompt = with_user_contexts(ctx.interpolate(step.prompt), ctx.user_contexts)

        provider = getattr(ctx.llm_config.provider, "value", ctx.llm_config.provider)
        ctx.emit_log(
            "info",
            f"Generating with LLM (prompt: {len(prompt)} chars, "
            f"contexts: {len(ctx.user_contexts)}, provider: {provider})",
        )

        result = await self.generate(prompt, ctx)

        ctx.last_step_result = truncate_for_display(result, RESULT_DISPLAY_LIMIT)
        ctx.set_variable(step.as_, result)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return f"→ ${step.as_}"


class ClassifyLLMStep(BaseLLMStep):
    """Classify text into one of a fixed set of categories."""

    step_type = "llm.classify"
    display_name = "LLM Classify"
    description = "Classify text into predefined categories"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        text = ctx.interpolate(step.input)
        categories = ", ".join(step.categories)

        ctx.emit_log("info", f"Classifying input into categories: {categories}")

        prompt = (
            f"Classify the following text into exactly one of these categories: {categories}.\n"
            f"\n"
            f"Text: {text}\n"
            f"\n"
            f"Respond with ONLY the category name, nothing else."
        )
        result = (await self.generate(with_user_contexts(prompt, ctx.user_contexts), ctx)).strip()

        ctx.last_step_result = result
        ctx.set_variable(step.as_, result)


LLM_STEP_TYPES: Dict[str, Type[BaseStep]] = {
    "llm.generate": GenerateLLMStep,
    "llm.classify": ClassifyLLMStep,
}

"""Browser automation steps.

Drive the remote browser transport supplied by the host:
- Navigation, clicks, typing, hovering, key presses, scrolling
- Text extraction (single element or all matches) into variables
- Waiting for elements and existence checks

Every step verifies the transport is attached and connected before it
interpolates anything; a missing connection is an ExtensionError and is
never retried.
"""

from typing import Any, Dict, Optional, Type

from core.constants import RESULT_DISPLAY_LIMIT
from core.exceptions import ExtensionError
from integrations.browser_client import BrowserClient
from steps.base_step import BaseStep
from workflow.context import ExecutionContext
from workflow.interpolation import truncate_for_display


class BaseBrowserStep(BaseStep):
    """Shared transport check for browser.* steps."""

    async def require_browser(self, ctx: ExecutionContext) -> BrowserClient:
        browser = ctx.browser
        if browser is None or not await browser.is_connected():
            raise ExtensionError("Browser extension not connected")
        return browser


class NavigateBrowserStep(BaseBrowserStep):
    step_type = "browser.navigate"
    display_name = "Navigate"
    description = "Open a URL in the browser tab"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        url = ctx.interpolate(step.url)

        # Default to https when no scheme is given
        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"

        ctx.emit_log("info", f"Navigating to: {url}")
        await browser.navigate(url)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return ctx.interpolate(step.url)


class ClickBrowserStep(BaseBrowserStep):
    step_type = "browser.click"
    display_name = "Click"
    description = "Click an element"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        selector = ctx.interpolate(step.selector)

        ctx.emit_log("info", f"Clicking: {selector}")
        await browser.click(selector)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return ctx.interpolate(step.selector)


class TypeBrowserStep(BaseBrowserStep):
    step_type = "browser.type"
    display_name = "Type"
    description = "Type text into an input"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        selector = ctx.interpolate(step.selector)
        text = ctx.interpolate(step.text)

        ctx.emit_log("info", f"Typing into: {selector}")
        await browser.type_text(selector, text, False)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return f'{ctx.interpolate(step.selector)} ← "{ctx.interpolate(step.text)}"'


class ScrollBrowserStep(BaseBrowserStep):
    step_type = "browser.scroll"
    display_name = "Scroll"
    description = "Scroll the page up or down"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        direction = step.direction or "down"
        amount = step.amount if step.amount is not None else self.settings.BROWSER_SCROLL_AMOUNT

        ctx.emit_log("info", f"Scrolling {direction}")
        await browser.scroll(direction, amount)


class ExtractBrowserStep(BaseBrowserStep):
    step_type = "browser.extract"
    display_name = "Extract"
    description = "Read an element's text into a variable"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        selector = ctx.interpolate(step.selector)

        ctx.emit_log("info", f"Extracting from: {selector}")
        text = await browser.extract(selector)

        ctx.last_step_result = truncate_for_display(text, RESULT_DISPLAY_LIMIT)
        ctx.set_variable(step.as_, text)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return f"{step.selector} → ${step.as_}"


class ExtractAllBrowserStep(BaseBrowserStep):
    step_type = "browser.extractAll"
    display_name = "Extract All"
    description = "Read the text of every matching element into a variable"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        selector = ctx.interpolate(step.selector)
        separator = step.separator if step.separator is not None else ", "

        ctx.emit_log("info", f"Extracting all from: {selector}")
        text = await browser.extract_all(selector, separator)

        ctx.last_step_result = truncate_for_display(text, RESULT_DISPLAY_LIMIT)
        ctx.set_variable(step.as_, text)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return f"{step.selector} → ${step.as_} (all)"


class WaitBrowserStep(BaseBrowserStep):
    step_type = "browser.wait"
    display_name = "Wait"
    description = "Wait for an element or a fixed delay"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)

        if step.selector:
            selector = ctx.interpolate(step.selector)
            timeout = step.timeout if step.timeout is not None else self.settings.BROWSER_WAIT_TIMEOUT_MS
            ctx.emit_log("info", f"Waiting for: {selector} (timeout: {timeout}ms)")
            await browser.wait_for_element(selector, timeout)
        elif step.ms:
            ctx.emit_log("info", f"Waiting {step.ms}ms")
            await self.executor.sleep(step.ms / 1000)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        if step.selector:
            return ctx.interpolate(step.selector)
        if step.ms:
            return f"{step.ms}ms"
        return None


class ExistsBrowserStep(BaseBrowserStep):
    step_type = "browser.exists"
    display_name = "Exists"
    description = "Check whether an element exists; stores 'true' or 'false'"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        selector = ctx.interpolate(step.selector)
        timeout = step.timeout if step.timeout is not None else self.settings.BROWSER_EXISTS_TIMEOUT_MS

        ctx.emit_log("info", f"Checking existence: {selector} (timeout: {timeout}ms)")

        exists = await browser.exists(selector, timeout)
        result = "true" if exists else "false"

        ctx.last_step_result = result
        ctx.set_variable(step.as_, result)
        ctx.emit_log("info", f"Element exists: {result}")

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return f"{ctx.interpolate(step.selector)} → ${step.as_}"


class HoverBrowserStep(BaseBrowserStep):
    step_type = "browser.hover"
    display_name = "Hover"
    description = "Move the pointer over an element"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        selector = ctx.interpolate(step.selector)

        ctx.emit_log("info", f"Hovering over: {selector}")
        await browser.hover(selector)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        return ctx.interpolate(step.selector)


class KeyBrowserStep(BaseBrowserStep):
    step_type = "browser.key"
    display_name = "Key Press"
    description = "Press a key, optionally on a specific element"

    async def execute(self, step: Any, ctx: ExecutionContext) -> None:
        browser = await self.require_browser(ctx)
        key = ctx.interpolate(step.key)
        selector = ctx.interpolate(step.selector) if step.selector else None

        if selector:
            ctx.emit_log("info", f"Pressing key '{key}' on: {selector}")
        else:
            ctx.emit_log("info", f"Pressing key: {key}")

        await browser.press_key(key, selector)

    def describe(self, step: Any, ctx: ExecutionContext) -> Optional[str]:
        key = ctx.interpolate(step.key)
        if step.selector:
            return f"'{key}' on {ctx.interpolate(step.selector)}"
        return f"'{key}'"


BROWSER_STEP_TYPES: Dict[str, Type[BaseStep]] = {
    "browser.navigate": NavigateBrowserStep,
    "browser.click": ClickBrowserStep,
    "browser.type": TypeBrowserStep,
    "browser.scroll": ScrollBrowserStep,
    "browser.extract": ExtractBrowserStep,
    "browser.extractAll": ExtractAllBrowserStep,
    "browser.wait": WaitBrowserStep,
    "browser.exists": ExistsBrowserStep,
    "browser.hover": HoverBrowserStep,
    "browser.key": KeyBrowserStep,
}

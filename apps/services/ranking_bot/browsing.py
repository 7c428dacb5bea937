"""
Scoped acquisition of browsing contexts (tabs).

Every product visit and cart read opens its own tab and must close it on
every exit path, including cancellation and unrecoverable errors, so a long
batch of tasks never leaks pages.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import BrowserContext, Page

from libs.core.config import Settings

from .diagnostics import DiagnosticSink

COMPONENT = "Browsing"


async def open_page(context: BrowserContext, url: str, settings: Settings) -> Page:
    """Open ``url`` in a new tab of ``context`` with the desktop viewport applied."""
    page = await context.new_page()
    try:
        await page.set_viewport_size(
            {"width": settings.site.viewport_width, "height": settings.site.viewport_height}
        )
        await page.goto(url, wait_until="domcontentloaded", timeout=settings.timeouts.navigation_ms)
    except BaseException:
        await page.close()
        raise
    return page


@asynccontextmanager
async def scoped_page(
    context: BrowserContext,
    url: str,
    settings: Settings,
    diagnostics: DiagnosticSink,
    restore_to: Optional[Page] = None,
) -> AsyncIterator[Page]:
    """Yield a new tab at ``url``; close it on exit and bring ``restore_to`` back to the foreground."""
    page = await open_page(context, url, settings)
    try:
        yield page
    finally:
        try:
            await page.close()
        except Exception as e:
            diagnostics.warning(COMPONENT, f"Closing tab failed: {e}", url=url)
        if restore_to is not None:
            try:
                await restore_to.bring_to_front()
            except Exception as e:
                diagnostics.warning(COMPONENT, f"Restoring results tab failed: {e}")

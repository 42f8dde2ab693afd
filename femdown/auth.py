"""Interactive login through a real browser window.

The user types their credentials into the site's own login page. We only
watch: after every navigation the page URL and cookies are checked until a
logged-in cookie shows up, the user wanders off the site, or the browser is
closed.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Iterable

from playwright.async_api import Error as PlaywrightError, async_playwright

from femdown.models import AppConfig, Session
from femdown.exceptions import AuthenticationError, LoginAbortedError
from femdown.logging_config import get_logger, log_with_context

logger = get_logger(__name__)

SITE_RE = re.compile(r'^https://(www\.)?frontendmasters\.com(/|$)')
LOGIN_PAGE_RE = re.compile(r'login/?$')
LOGGED_IN_COOKIE = 'wordpress_logged_in'


class LoginState(Enum):
    PENDING = "pending"
    SUCCESS = "success"


def check_login_state(url: str, cookie_names: Iterable[str]) -> LoginState:
    """Decide what a navigation to ``url`` means for the login.

    Raises:
        LoginAbortedError: The user left the site, or left the login page without logging in.
    """
    if not SITE_RE.match(url):
        raise LoginAbortedError("Left site.", url=url)

    if LOGIN_PAGE_RE.search(url):
        return LoginState.PENDING

    if not any(LOGGED_IN_COOKIE in name for name in cookie_names):
        raise LoginAbortedError("Left login page.", url=url)

    return LoginState.SUCCESS


class LoginWatcher:
    """Polls a page after each navigation until the login state is decided.

    ``cancel`` may be hooked to any event (browser disconnect, page close);
    once called, ``run`` stops waiting and raises LoginAbortedError.
    """

    def __init__(self, page):
        self.page = page
        self.cancelled = asyncio.Event()

    def cancel(self, *_) -> None:
        self.cancelled.set()

    async def _next_state(self) -> LoginState:
        await self.page.wait_for_event(
            "framenavigated",
            predicate=lambda frame: frame == self.page.main_frame,
            timeout=0
        )
        await self.page.wait_for_load_state("networkidle", timeout=0)

        cookies = await self.page.context.cookies()
        return check_login_state(self.page.url, [cookie['name'] for cookie in cookies])

    async def _poll(self) -> None:
        while True:
            try:
                state = await self._next_state()
            except PlaywrightError as e:
                raise LoginAbortedError(f"Browser closed: {e}")

            logger.debug(f"Login page navigated to {self.page.url}: {state.value}")
            if state is LoginState.SUCCESS:
                return

    async def run(self) -> None:
        poll = asyncio.ensure_future(self._poll())
        cancelled = asyncio.ensure_future(self.cancelled.wait())
        try:
            done, _ = await asyncio.wait({poll, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (poll, cancelled):
                if not task.done():
                    task.cancel()
            await asyncio.gather(poll, cancelled, return_exceptions=True)

        if poll in done and not poll.cancelled():
            # Re-raises LoginAbortedError from the poll loop
            poll.result()
            return

        raise LoginAbortedError("Browser closed before login completed.")


class BrowserLogin:
    """Opens a visible browser on the login page and captures the session cookies."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.login_url = config.endpoints['login']

    async def login(self) -> Session:
        """Run the interactive login.

        Raises:
            LoginAbortedError: If the user does not complete the login.
            AuthenticationError: If the browser cannot be started or the page not loaded.
        """
        async with async_playwright() as playwright:
            try:
                browser = await playwright.chromium.launch(
                    headless=False,
                    channel=self.config.browser_channel,
                    executable_path=self.config.browser_executable,
                )
            except PlaywrightError as e:
                raise AuthenticationError(f"Could not start browser: {e}")

            try:
                page = await browser.new_page()
                try:
                    await page.goto(self.login_url, wait_until="networkidle")
                except PlaywrightError as e:
                    raise AuthenticationError(f"Could not open login page: {e}", url=self.login_url)

                watcher = LoginWatcher(page)
                browser.once("disconnected", watcher.cancel)
                page.once("close", watcher.cancel)

                await watcher.run()

                session = Session.from_cookies(await page.context.cookies())
                log_with_context(logger, logging.INFO, "Login successful", {
                    'cookies': len(session.cookies)
                })
                return session
            finally:
                if browser.is_connected():
                    await browser.close()

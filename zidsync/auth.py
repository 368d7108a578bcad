"""Browser-driven login to the Zid dashboard.

The dashboard has no API login, so a Chromium window is opened on the login
page and :class:`LoginFlow` fills in the email and password forms as they
appear. The user can still interact with the window (captcha, OTP...). Once
the browser reaches the dashboard home page, the cookies are captured and
cached.
"""

import logging
import time
from enum import Enum
from typing import Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, sync_playwright

from .config import Credentials
from .exceptions import ZidLoginError, ZidLoginTimeoutError
from .session import Session, SessionCache

logger = logging.getLogger(__name__)

EMAIL_INPUT = 'input[name="email"]'
PASSWORD_INPUT = 'input[name="password"]'
SUBMIT_BUTTON = 'button.zid-form__submit[type="button"]'
PASSWORD_LOGIN_LINK = 'a[href="/login/password"]'

OTP_PATH = "/otp"
PASSWORD_PATH = "/login/password"

LOGIN_TIMEOUT = 300.0
POLL_INTERVAL = 1.0
SETTLE_DELAY = 1.0


class LoginStep(Enum):
    """Progress of the login form automation."""

    AWAITING_EMAIL = "awaiting-email"
    EMAIL_SUBMITTED = "email-submitted"
    AWAITING_PASSWORD = "awaiting-password"
    PASSWORD_SUBMITTED = "password-submitted"
    DONE = "done"


class LoginPage(Protocol):
    """The page operations the login flow needs."""

    @property
    def url(self) -> str: ...

    def field_value(self, selector: str) -> Optional[str]:
        """Current value of an input, or None if it is not on the page."""
        ...

    def fill(self, selector: str, text: str) -> bool:
        """Type into an input; False if it is not on the page."""
        ...

    def click(self, selector: str) -> bool:
        """Click an element; False if it is not on the page."""
        ...

    def wait(self, seconds: float) -> None:
        """Pause while still processing browser events."""
        ...


class PlaywrightPage:
    """:class:`LoginPage` backed by a Playwright page."""

    def __init__(self, page: Page):
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    def field_value(self, selector: str) -> Optional[str]:
        element = self.page.query_selector(selector)
        if element is None:
            return None
        return element.input_value()

    def fill(self, selector: str, text: str) -> bool:
        element = self.page.query_selector(selector)
        if element is None:
            logger.debug(f"{selector} left the page before it could be filled")
            return False
        # Type like a user so the form's input handlers fire
        element.type(text)
        return True

    def click(self, selector: str) -> bool:
        element = self.page.query_selector(selector)
        if element is None:
            return False
        element.click()
        return True

    def wait(self, seconds: float) -> None:
        # The sync API only applies navigation events during calls into the
        # driver, so a plain sleep would leave page.url stale
        self.page.wait_for_timeout(seconds * 1000)


class LoginFlow:
    """State machine that fills in the two-step (email, then password) login.

    Call :meth:`tick` periodically; each call inspects the page once and
    performs at most the next pending action.
    """

    def __init__(
        self,
        email: str,
        password: str,
        home_url: str,
        settle_delay: float = SETTLE_DELAY,
    ):
        self.email = email
        self.password = password
        self.home_url = home_url
        self.settle_delay = settle_delay
        self.step = LoginStep.AWAITING_EMAIL
        self.ignored_errors = 0

    @property
    def done(self) -> bool:
        return self.step is LoginStep.DONE

    def tick(self, page: LoginPage) -> LoginStep:
        """Inspect the page and advance the login by at most one action.

        Errors raised by the page (elements detaching while the dashboard
        navigates, etc.) are counted and ignored; the next tick retries.

        Args:
            page: Page to drive

        Returns:
            The step after this tick
        """
        if self.done:
            return self.step
        try:
            self._advance(page)
        except Exception as e:
            self.ignored_errors += 1
            logger.debug(f"Login tick failed ({self.ignored_errors} so far): {e}")
        return self.step

    def _advance(self, page: LoginPage) -> None:
        url = page.url
        if url == self.home_url:
            self.step = LoginStep.DONE
            return

        if self.step is LoginStep.AWAITING_EMAIL:
            if self._submit_field(page, EMAIL_INPUT, self.email):
                logger.info("Email submitted")
                self.step = LoginStep.EMAIL_SUBMITTED

        if OTP_PATH in url and page.click(PASSWORD_LOGIN_LINK):
            logger.info("Switched from one-time code to password login")

        if PASSWORD_PATH in url and self.step is not LoginStep.PASSWORD_SUBMITTED:
            self.step = LoginStep.AWAITING_PASSWORD
            if self._submit_field(page, PASSWORD_INPUT, self.password):
                logger.info("Password submitted")
                self.step = LoginStep.PASSWORD_SUBMITTED

    def _submit_field(self, page: LoginPage, selector: str, text: str) -> bool:
        """Fill an empty field, let the form settle, then press submit."""
        if page.field_value(selector) != "":
            return False
        if not page.fill(selector, text):
            return False
        page.wait(self.settle_delay)
        return page.click(SUBMIT_BUTTON)


class BrowserAuthenticator:
    """Obtains a fresh session by logging in through a Chromium window."""

    def __init__(
        self,
        cache: SessionCache,
        timeout: float = LOGIN_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ):
        """Initialize the authenticator.

        Args:
            cache: Cache that receives the cookies after a successful login
            timeout: Seconds to wait for the dashboard home page (default: 5 min)
            poll_interval: Seconds between two login flow ticks
        """
        self.cache = cache
        self.timeout = timeout
        self.poll_interval = poll_interval

    def login(self, credentials: Credentials) -> Session:
        """Log in and return the new session.

        Args:
            credentials: Account credentials and dashboard URLs

        Returns:
            Session built from the browser cookies

        Raises:
            ZidLoginTimeoutError: If the home page is not reached in time
            ZidLoginError: If the browser fails or is closed
            ZidSessionError: If the captured cookies lack the CSRF cookie
        """
        logger.info("Opening browser for login")
        flow = LoginFlow(credentials.email, credentials.password, credentials.home_url)

        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=credentials.headless)
                try:
                    context = browser.new_context()
                    page = context.new_page()
                    page.goto(credentials.login_url, wait_until="networkidle")
                    self._wait_for_login(page, flow)
                    cookies = [dict(c) for c in context.cookies()]
                finally:
                    browser.close()
        except PlaywrightError as e:
            raise ZidLoginError(f"Browser login failed: {e}") from e

        session = Session.from_cookies(cookies)
        self.cache.save(cookies)
        logger.info("Logged in and cookies saved")
        return session

    def _wait_for_login(self, page: Page, flow: LoginFlow) -> None:
        driver = PlaywrightPage(page)
        deadline = time.monotonic() + self.timeout
        while True:
            if page.is_closed():
                raise ZidLoginError("Browser window closed before login completed")
            if flow.tick(driver) is LoginStep.DONE:
                return
            if time.monotonic() >= deadline:
                raise ZidLoginTimeoutError(
                    f"Login did not complete within {self.timeout:.0f} seconds "
                    f"(last step: {flow.step.value})"
                )
            driver.wait(self.poll_interval)

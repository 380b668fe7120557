import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from .app_api import ERROR, FOUND, NOT_FOUND, AppAPI
from .config import DEFAULT_CHECKIN_DISPLAY_SECONDS
from .dates import Clock
from .models import CheckInResult
from .plans import EXPIRED

IDLE = "idle"
SEARCHING = "searching"

STATES = (IDLE, SEARCHING, FOUND, NOT_FOUND, ERROR)


class CheckInSession:
    """
    Front-desk check-in screen state.

    A search shows its result for `display_seconds`, then the screen goes
    back to idle so the next member can type their DNI. Expired members can
    be renewed from the result, which restarts the search for the same DNI.
    """

    def __init__(
        self,
        api: AppAPI,
        clock: Optional[Clock] = None,
        display_seconds: int = DEFAULT_CHECKIN_DISPLAY_SECONDS,
    ):
        self.api = api
        self.clock = clock or api.clock
        self.display_seconds = display_seconds
        self.state = IDLE
        self.dni = ""
        self.result: Optional[CheckInResult] = None
        self._reset_at: Optional[datetime] = None

    def search(self, dni: str) -> CheckInResult:
        self.state = SEARCHING
        self.dni = (dni or "").strip()
        self.result = self.api.check_in_member(self.dni)
        self.state = self.result.outcome
        self._reset_at = self.clock.now() + timedelta(seconds=self.display_seconds)
        return self.result

    def remaining_seconds(self) -> int:
        if self._reset_at is None:
            return 0
        left = (self._reset_at - self.clock.now()).total_seconds()
        return max(int(-(-left // 1)), 0)

    def tick(self) -> str:
        """Returns to idle once the display countdown has run out."""
        if self._reset_at is not None and self.clock.now() >= self._reset_at:
            self.dismiss()
        return self.state

    def dismiss(self) -> None:
        self.state = IDLE
        self.dni = ""
        self.result = None
        self._reset_at = None

    @property
    def can_renew(self) -> bool:
        return (
            self.state == FOUND
            and self.result is not None
            and self.result.status is not None
            and self.result.status.state == EXPIRED
        )

    def renew(self, membership_type: Optional[str] = None) -> Tuple[bool, str]:
        """Renews the member on screen and searches again to show the new status."""
        if not self.can_renew:
            return False, "Only expired memberships can be renewed from check-in."
        dni = self.dni
        self._reset_at = None
        success, message = self.api.renew_membership(dni, membership_type)
        if success:
            logging.info(f"Renewed DNI {dni} from the check-in screen.")
            self.search(dni)
        return success, message

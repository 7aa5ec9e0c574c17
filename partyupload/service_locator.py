"""Service locator for process-wide components."""

import threading
from typing import Optional

from partyupload.services.login_throttle import LoginThrottle

_login_throttle: Optional[LoginThrottle] = None
_login_throttle_lock = threading.Lock()


def set_login_throttle(throttle: Optional[LoginThrottle]):
    """Set global login throttle instance"""
    global _login_throttle
    with _login_throttle_lock:
        _login_throttle = throttle


def get_login_throttle() -> LoginThrottle:
    """Get global login throttle instance, creating it from config on first use"""
    global _login_throttle
    throttle = _login_throttle
    if throttle is not None:
        return throttle
    with _login_throttle_lock:
        if _login_throttle is None:
            _login_throttle = LoginThrottle()
        return _login_throttle

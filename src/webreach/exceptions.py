"""webreach exception hierarchy.

Every failure that can cross a component boundary is one of these.  The tool
layer (``webreach.tools``) converts them into ``{"success": false, "error": ...}``
envelopes, so nothing here ever reaches the orchestrator as a raised exception.
"""

from __future__ import annotations


class WebReachError(Exception):
    """Base exception for all webreach errors."""


class ElementNotFound(WebReachError):
    """Raised when the resolver exhausts its retry window without a match.

    Attributes:
        selector: The selector string (or query description) that failed.
        detail: Extra context, e.g. ``"marker registry is stale"``.
    """

    def __init__(self, selector: str, detail: str = "") -> None:
        self.selector = selector
        self.detail = detail
        message = f"Element not found: {selector}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class NavigationAborted(WebReachError):
    """Raised when a navigation aborts and the final URL never settles."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} aborted: {reason}")


class ComposerNotFound(WebReachError):
    """Raised when a platform's text composer cannot be located."""

    def __init__(self, platform: str, detail: str = "") -> None:
        self.platform = platform
        self.detail = detail
        message = f"{platform} composer not found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ScriptInjectionFailure(WebReachError):
    """Raised when the page refuses to run the in-page runtime (e.g. CSP)."""


class SessionNotReady(WebReachError):
    """Raised when no page is registered, or the page died mid-operation."""


class OperationCancelled(WebReachError):
    """Raised when a cooperative cancellation request is observed."""


class InvalidTransition(WebReachError):
    """Raised when the interaction state machine receives an illegal event."""

    def __init__(self, state: str, event: str) -> None:
        self.state = state
        self.event = event
        super().__init__(f"Illegal simulator transition: {event!r} from state {state!r}")


class WrongSite(WebReachError):
    """Raised when a site adapter runs while the page is on another host."""

    def __init__(self, platform: str, url: str) -> None:
        self.platform = platform
        self.url = url
        super().__init__(f"Not on {platform} (current page: {url})")


class ElementNotInteractable(WebReachError):
    """Raised when a located element cannot take the requested action.

    Attributes:
        selector: Description of the target element.
        reason: What blocked the action, e.g. ``"obscured by modal"`` or a
            ``"not editable"`` note when the typing target accepts no text.
    """

    def __init__(self, selector: str, reason: str) -> None:
        self.selector = selector
        self.reason = reason
        super().__init__(f"Element not interactable: {selector} ({reason})")

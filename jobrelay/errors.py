"""Exception hierarchy shared across the automation and relay layers."""

from jobrelay.enums import DecodePhase
from jobrelay.observability.redaction import mask_identity


class AutomationError(Exception):
    """Base class for browser automation failures."""


class AuthenticationError(AutomationError):
    """No valid session could be established for an account."""


class ChallengeTimeoutError(AuthenticationError):
    """A verification challenge was not resolved within the polling window."""


class PostingError(AutomationError):
    """Publishing to a destination failed."""


class NavigationError(PostingError):
    """A destination could not be loaded."""


class CrashDetected(PostingError):
    """The page crashed or was closed underneath the automation."""


class SelectorNotFound(PostingError):
    """None of the selectors for a required UI element matched."""


class InteractionError(PostingError):
    """An element was found but could not be interacted with."""


class AccountBusyError(AutomationError):
    """Another publish run already holds the account's browsing context."""

    def __init__(self, account_key: str):
        super().__init__(
            f"A publish run is already in progress for {mask_identity(account_key)}"
        )
        self.account_key = account_key


class DecodeError(ValueError):
    """A context token could not be decoded, not even partially."""

    phase = DecodePhase.FAILED


class RelayDeliveryError(Exception):
    """The downstream webhook rejected or never received a payload."""


class InvalidTransitionError(ValueError):
    """A publish record was asked to move along a transition it doesn't allow."""

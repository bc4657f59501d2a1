"""Selector sets for the login form and the post composer.

Selectors are data: each UI element is an ordered tuple of candidates, tried
first to last. Overrides can be loaded from YAML so a UI change on the
destination site only needs a config edit.

Example override file::

    composer_triggers:
      - 'div[role="button"]:has-text("Start a discussion")'
    crash_markers: [snap, crash]
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml


@dataclass(frozen=True)
class SelectorSet:
    login_identity: tuple[str, ...] = ('input#email', 'input[name="email"]')
    login_secret: tuple[str, ...] = ('input#pass', 'input[name="pass"]')
    login_submit: tuple[str, ...] = ('button[name="login"]', 'button[type="submit"]')

    composer_triggers: tuple[str, ...] = (
        'span:has-text("Write something...")',
        'div[role="button"]:has-text("Write something...")',
        '[aria-label="Write something..."]',
        '[data-testid="status-attachment-mentions-input"]',
        '[placeholder="Write something..."]',
        'span:text-is("Write something...")',
        'xpath=//*[contains(text(), "Write something")]',
    )
    text_inputs: tuple[str, ...] = (
        'div.xzsf02u.x1a2a7pz.x1n2onr6.x14wi4xw.x9f619.x1lliihq.x5yr21d.xh8yej3'
        '.notranslate[contenteditable="true"][role="textbox"]',
        '[aria-placeholder="Create a public post…"][contenteditable="true"]',
        '[data-lexical-editor="true"][contenteditable="true"]',
        'div[contenteditable="true"][role="textbox"]',
    )
    submit_enabled: tuple[str, ...] = (
        'div[aria-label="Post"][role="button"]:not([aria-disabled="true"])',
    )
    submit_any: tuple[str, ...] = ('div[aria-label="Post"][role="button"]',)
    composer_dialog: str = '[role="dialog"]'

    success_indicators: tuple[str, ...] = (
        'text="Your post is now published"',
        'text="Post shared"',
        'div[data-testid="toast-message"]',
    )
    failure_indicators: tuple[str, ...] = (
        'text="Something went wrong"',
        'text="Your post couldn\'t be shared"',
    )

    # Lower-case substrings matched against page content, title or body text
    challenge_markers: tuple[str, ...] = ("checkpoint", "two_factor")
    crash_markers: tuple[str, ...] = ("snap", "error", "crash", "killed")
    restricted_markers: tuple[str, ...] = (
        "you can't post in this group",
        "posting is restricted",
        "you've been restricted",
    )


def load_selector_set(path: str | Path | None) -> SelectorSet:
    """Build a SelectorSet, applying overrides from a YAML file when given.

    Raises:
        ValueError: If the file names unknown keys or holds malformed values.
    """
    defaults = SelectorSet()
    if path is None:
        return defaults

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Selector overrides in {path} must be a mapping")

    known = {f.name: f for f in fields(SelectorSet)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"Unknown selector keys in {path}: {', '.join(unknown)}")

    overrides: dict[str, object] = {}
    for key, value in data.items():
        if key == "composer_dialog":
            if not isinstance(value, str) or not value:
                raise ValueError(f"{key} must be a non-empty string")
            overrides[key] = value
            continue
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not value or not all(
            isinstance(v, str) and v for v in value
        ):
            raise ValueError(f"{key} must be a non-empty list of strings")
        overrides[key] = tuple(value)

    return replace(defaults, **overrides)

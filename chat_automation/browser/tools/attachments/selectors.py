from __future__ import annotations

from dataclasses import dataclass

UPLOAD_TARGET_ATTR = "data-chat-upload-target"

# The composer hides the real file input behind a "+" menu on newer layouts.
COMPOSER_PLUS_SELECTORS: tuple[str, ...] = (
    "#composer-plus-btn",
    'button[data-testid="composer-plus-btn"]',
    '[data-testid*="plus"]',
    'button[aria-label*="add"]',
    'button[aria-label*="attachment"]',
    'button[aria-label*="file"]',
)

UPLOAD_MENU_ITEM_SELECTORS: tuple[str, ...] = (
    '[data-testid*="upload"]',
    '[data-testid*="attachment"]',
    '[role="menuitem"]',
    "[data-radix-collection-item]",
)

UPLOAD_MENU_KEYWORDS: tuple[str, ...] = ("upload", "attachment", "file")

ATTACHMENT_SELECTORS: tuple[str, ...] = (
    '[data-testid*="attachment"]',
    '[data-testid*="chip"]',
    '[data-testid*="upload"]',
)

REMOVE_BUTTON_SELECTORS: tuple[str, ...] = (
    '[aria-label*="Remove"]',
    'button[aria-label*="Remove"]',
)

SEND_BUTTON_SELECTORS: tuple[str, ...] = (
    'button[data-testid="send-button"]',
    'button[data-testid*="composer-send"]',
    "form button[type=\"submit\"]",
    'button[aria-label*="Send"]',
)

UPLOAD_STATUS_SELECTORS: tuple[str, ...] = (
    '[data-testid*="upload-status"]',
    '[data-testid*="upload-progress"]',
    '[data-testid*="attachment"][aria-busy]',
    '[data-testid*="attachment"][data-state]',
    '[role="progressbar"]',
)

UPLOAD_BUSY_STATES: tuple[str, ...] = ("loading", "uploading", "pending")
UPLOAD_BUSY_KEYWORDS: tuple[str, ...] = ("upload", "processing", "uploading")

CONVERSATION_TURN_SELECTOR = (
    'article[data-testid^="conversation-turn"], div[data-testid^="conversation-turn"], [data-message-author-role]'
)


@dataclass(frozen=True)
class SelectorConfig:
    """Page-shape knowledge for the chat composer.

    Control flow never hard-codes selectors; swap an instance to follow UI drift.
    """

    upload_target_attr: str = UPLOAD_TARGET_ATTR
    composer_plus: tuple[str, ...] = COMPOSER_PLUS_SELECTORS
    upload_menu_items: tuple[str, ...] = UPLOAD_MENU_ITEM_SELECTORS
    upload_menu_keywords: tuple[str, ...] = UPLOAD_MENU_KEYWORDS
    attachments: tuple[str, ...] = ATTACHMENT_SELECTORS
    remove_buttons: tuple[str, ...] = REMOVE_BUTTON_SELECTORS
    send_buttons: tuple[str, ...] = SEND_BUTTON_SELECTORS
    upload_status: tuple[str, ...] = UPLOAD_STATUS_SELECTORS
    upload_busy_states: tuple[str, ...] = UPLOAD_BUSY_STATES
    upload_busy_keywords: tuple[str, ...] = UPLOAD_BUSY_KEYWORDS
    conversation_turn: str = CONVERSATION_TURN_SELECTOR

    @property
    def card_buttons(self) -> tuple[str, ...]:
        # The attachment card is the grandparent of its remove button.
        return self.remove_buttons[:1]

    @property
    def tagged_input_selector(self) -> str:
        return f'input[type="file"][{self.upload_target_attr}="true"]'


DEFAULT_SELECTORS = SelectorConfig()

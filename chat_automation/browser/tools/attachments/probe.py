"""
Page probes for the chat composer.

Every read of the page goes through PageProbe: a small set of typed queries,
each backed by one self-contained Runtime.evaluate expression. The probes only
collect raw text; deciding what matches lives in names.py.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ...http_client import HttpClientError
from .selectors import DEFAULT_SELECTORS, SelectorConfig

PROBE_MARKER = "chat-probe:"

# Shared helpers injected into probes that read labels.
_LABEL_JS = """
  const __clip = (s) => String(s || '').slice(0, 1000);
  const __attr = (el, name) => {
    try { return __clip(el && el.getAttribute ? el.getAttribute(name) : ''); } catch (e) { return ''; }
  };
  const __text = (el) => {
    try { return __clip(el ? (el.innerText || el.textContent || '') : ''); } catch (e) { return ''; }
  };
  const __all = (selectors) => {
    const out = [];
    for (const sel of selectors) {
      try { out.push(...Array.from(document.querySelectorAll(sel))); } catch (e) {}
    }
    return out;
  };
  const __cardText = (btn) => __text(btn && btn.parentElement ? btn.parentElement.parentElement : null);
  const __inputFiles = () => Array.from(document.querySelectorAll('input[type="file"]')).map((el) =>
    Array.from(el.files || []).map((f) => String((f && f.name) || '')).filter(Boolean)
  );
"""


class ControlState(str, Enum):
    READY = "ready"
    DISABLED = "disabled"
    MISSING = "missing"

    @classmethod
    def coerce(cls, raw: Any) -> ControlState:
        try:
            return cls(str(raw))
        except ValueError:
            return cls.MISSING


@dataclass(frozen=True)
class ProbeSnapshot:
    chips: tuple[str, ...] = ()
    input_files: tuple[tuple[str, ...], ...] = ()
    control_state: ControlState = ControlState.MISSING
    uploading: bool = False

    @property
    def files_attached(self) -> bool:
        return any(self.chips)

    @property
    def input_names(self) -> list[str]:
        return [name for files in self.input_files for name in files if name]

    @classmethod
    def from_value(cls, value: Any) -> ProbeSnapshot:
        data = value if isinstance(value, dict) else {}
        return cls(
            chips=_str_tuple(data.get("chips")),
            input_files=_input_files(data.get("inputs")),
            control_state=ControlState.coerce(data.get("state")),
            uploading=bool(data.get("uploading")),
        )


@dataclass(frozen=True)
class PresenceProbe:
    chips: tuple[str, ...] = ()
    cards: tuple[str, ...] = ()
    input_files: tuple[tuple[str, ...], ...] = ()


@dataclass(frozen=True)
class VisibilityProbe:
    attachments: tuple[tuple[str, ...], ...] = ()
    cards: tuple[str, ...] = ()


@dataclass(frozen=True)
class TagResult:
    tagged: bool
    inputs: int = 0
    index: int | None = None
    tagged_count: int = 0


@dataclass(frozen=True)
class UserTurnProbe:
    text: str = ""
    attrs: tuple[str, ...] = field(default_factory=tuple)


def _str_tuple(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(str(item) for item in raw if isinstance(item, str) and item.strip())


def _input_files(raw: Any) -> tuple[tuple[str, ...], ...]:
    if not isinstance(raw, list):
        return ()
    out: list[tuple[str, ...]] = []
    for entry in raw:
        # Accept both [[names]] and [{files: [names]}] shapes.
        files = entry.get("files") if isinstance(entry, dict) else entry
        out.append(_str_tuple(files))
    return tuple(out)


class PageProbe:
    """Typed page queries over a script channel: a BrowserSession, or anything with `send`."""

    def __init__(self, runtime: Any, selectors: SelectorConfig | None = None) -> None:
        self.runtime = runtime
        self.selectors = selectors or DEFAULT_SELECTORS

    def evaluate(self, name: str, body: str) -> Any:
        expression = f"(() => {{ /* {PROBE_MARKER}{name} */\n{body}\n}})()"
        eval_js = getattr(self.runtime, "eval_js", None)
        if callable(eval_js):
            # BrowserSession: Runtime enabled once, page exceptions raised as HttpClientError.
            return eval_js(expression)
        result = self.runtime.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
        )
        if not isinstance(result, dict):
            return None
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            raise HttpClientError(f"probe {name} threw: {details.get('text') or 'page exception'}")
        value = result.get("result")
        return value.get("value") if isinstance(value, dict) else None

    # Priming

    def click_composer_plus(self) -> bool:
        body = f"""
  const selectors = {json.dumps(list(self.selectors.composer_plus))};
  for (const selector of selectors) {{
    let el = null;
    try {{ el = document.querySelector(selector); }} catch (e) {{ continue; }}
    if (el instanceof HTMLElement) {{ el.click(); return true; }}
  }}
  return false;
"""
        return bool(self.evaluate("composer-plus", body))

    def click_upload_menu_item(self) -> bool:
        body = f"""
  const keywords = {json.dumps(list(self.selectors.upload_menu_keywords))};
  const selector = {json.dumps(", ".join(self.selectors.upload_menu_items))};
  for (const el of Array.from(document.querySelectorAll(selector))) {{
    const text = String(el.textContent || '').toLowerCase();
    const tid = String((el.getAttribute && el.getAttribute('data-testid')) || '').toLowerCase();
    if (keywords.some((k) => tid.includes(k) || text.includes(k))) {{
      if (el instanceof HTMLElement) {{ el.click(); return true; }}
    }}
  }}
  return false;
"""
        return bool(self.evaluate("upload-menu", body))

    # Locating

    def presence(self) -> PresenceProbe:
        body = f"""
{_LABEL_JS}
  const chips = __all({json.dumps(list(self.selectors.attachments))}).map(__text).filter(Boolean);
  const cards = __all({json.dumps(list(self.selectors.card_buttons))}).map(__cardText).filter(Boolean);
  return {{ chips, cards, inputs: __inputFiles() }};
"""
        value = self.evaluate("presence", body)
        data = value if isinstance(value, dict) else {}
        return PresenceProbe(
            chips=_str_tuple(data.get("chips")),
            cards=_str_tuple(data.get("cards")),
            input_files=_input_files(data.get("inputs")),
        )

    def file_input_accepts(self) -> list[str]:
        """`accept` attribute of every file input in document order ('' when absent)."""
        body = """
  return Array.from(document.querySelectorAll('input[type="file"]'))
    .map((el) => String(el.getAttribute('accept') || ''));
"""
        value = self.evaluate("file-inputs", body)
        if not isinstance(value, list):
            return []
        return [item if isinstance(item, str) else "" for item in value]

    def tag_upload_input(self, index: int) -> TagResult:
        """Mark file input `index` with the upload-target attribute, clearing every older mark."""
        attr = self.selectors.upload_target_attr
        body = f"""
  const attr = {json.dumps(attr)};
  const index = {json.dumps(int(index))};
  const marked = () => Array.from(document.querySelectorAll('[' + attr + ']'));
  for (const el of marked()) el.removeAttribute(attr);
  const inputs = Array.from(document.querySelectorAll('input[type="file"]'));
  const target = inputs[index] || null;
  if (target) target.setAttribute(attr, 'true');
  return {{ tagged: Boolean(target), inputs: inputs.length, index, taggedCount: marked().length }};
"""
        value = self.evaluate("tag-input", body)
        data = value if isinstance(value, dict) else {}
        raw_index = data.get("index")
        return TagResult(
            tagged=bool(data.get("tagged")),
            inputs=int(data.get("inputs") or 0),
            index=raw_index if isinstance(raw_index, int) else None,
            tagged_count=int(data.get("taggedCount") or 0),
        )

    def dispatch_change_events(self, selector: str) -> bool:
        body = f"""
  const el = document.querySelector({json.dumps(selector)});
  if (!(el instanceof HTMLInputElement)) return false;
  el.dispatchEvent(new Event('input', {{ bubbles: true }}));
  el.dispatchEvent(new Event('change', {{ bubbles: true }}));
  return true;
"""
        return bool(self.evaluate("dispatch-events", body))

    # Confirming

    def upload_snapshot(self) -> ProbeSnapshot:
        """Chip texts and per-input file names right after files were set."""
        selectors = [*self.selectors.attachments, *self.selectors.card_buttons]
        body = f"""
{_LABEL_JS}
  const chips = __all({json.dumps(selectors)}).map((n) => __text(n).trim()).filter(Boolean);
  return {{ chips, inputs: __inputFiles().map((files) => ({{ files }})) }};
"""
        return ProbeSnapshot.from_value(self.evaluate("upload-snapshot", body))

    def anchor_labels(self) -> list[str]:
        """text / aria-label / title of every chip, card and remove button, plus card texts."""
        selectors = [*self.selectors.attachments, *self.selectors.remove_buttons]
        body = f"""
{_LABEL_JS}
  const labels = [];
  for (const node of __all({json.dumps(selectors)})) {{
    labels.push(__text(node), __attr(node, 'aria-label'), __attr(node, 'title'));
  }}
  for (const btn of __all({json.dumps(list(self.selectors.card_buttons))})) labels.push(__cardText(btn));
  return labels.filter(Boolean);
"""
        value = self.evaluate("anchor", body)
        return list(_str_tuple(value))

    def visibility(self) -> VisibilityProbe:
        body = f"""
{_LABEL_JS}
  const attachments = __all({json.dumps(list(self.selectors.attachments))}).map((node) =>
    [__text(node), __attr(node, 'aria-label'), __attr(node, 'title'), __attr(node, 'data-testid'), __attr(node, 'alt')]
      .filter(Boolean)
  );
  const cards = __all({json.dumps(list(self.selectors.card_buttons))}).map(__cardText).filter(Boolean);
  return {{ attachments, cards }};
"""
        value = self.evaluate("visible", body)
        data = value if isinstance(value, dict) else {}
        raw = data.get("attachments")
        attachments = tuple(_str_tuple(entry) for entry in raw) if isinstance(raw, list) else ()
        return VisibilityProbe(attachments=attachments, cards=_str_tuple(data.get("cards")))

    def readiness(self) -> ProbeSnapshot:
        s = self.selectors
        body = f"""
{_LABEL_JS}
  let button = null;
  for (const selector of {json.dumps(list(s.send_buttons))}) {{
    try {{ button = document.querySelector(selector); }} catch (e) {{ button = null; }}
    if (button) break;
  }}
  const disabled = button
    ? button.hasAttribute('disabled') ||
      button.getAttribute('aria-disabled') === 'true' ||
      button.getAttribute('data-disabled') === 'true' ||
      window.getComputedStyle(button).pointerEvents === 'none'
    : null;
  const busyStates = {json.dumps(list(s.upload_busy_states))};
  const busyWords = {json.dumps(list(s.upload_busy_keywords))};
  const uploading = __all({json.dumps(list(s.upload_status))}).some((node) => {{
    if (node.getAttribute('aria-busy') === 'true') return true;
    if (busyStates.includes(String(node.getAttribute('data-state') || '').toLowerCase())) return true;
    const text = String(node.textContent || '').toLowerCase();
    return busyWords.some((w) => text.includes(w));
  }});
  const chips = __all({json.dumps(list(s.attachments))}).map(__text).filter(Boolean);
  chips.push(...__all({json.dumps(list(s.card_buttons))}).map(__cardText).filter(Boolean));
  return {{
    state: button ? (disabled ? 'disabled' : 'ready') : 'missing',
    uploading,
    chips,
    inputs: __inputFiles(),
  }};
"""
        return ProbeSnapshot.from_value(self.evaluate("readiness", body))

    # After send

    def last_user_turn(self) -> UserTurnProbe | None:
        body = f"""
  const turns = Array.from(document.querySelectorAll({json.dumps(self.selectors.conversation_turn)}));
  const userTurns = turns.filter((node) => {{
    const role = String(
      node.getAttribute('data-message-author-role') || node.getAttribute('data-turn') || ''
    ).toLowerCase();
    if (role === 'user') return true;
    return Boolean(node.querySelector('[data-message-author-role="user"]'));
  }});
  const last = userTurns[userTurns.length - 1];
  if (!last) return {{ ok: false }};
  const attrs = Array.from(last.querySelectorAll('[aria-label],[title]'))
    .map((el) => ((el.getAttribute('aria-label') || '') + ' ' + (el.getAttribute('title') || '')).trim())
    .filter(Boolean);
  return {{ ok: true, text: String(last.innerText || last.textContent || ''), attrs }};
"""
        value = self.evaluate("user-turn", body)
        if not isinstance(value, dict) or not value.get("ok"):
            return None
        return UserTurnProbe(text=str(value.get("text") or ""), attrs=_str_tuple(value.get("attrs")))

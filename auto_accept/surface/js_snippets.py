"""
JavaScript evaluated inside the rendering surface.

Every snippet is a self-contained expression returning JSON. Builders embed their
arguments with json.dumps. Snippets walk the main document plus same-origin
iframes, and swallow per-element errors so one broken node never fails a call.
"""

from __future__ import annotations

import json

HANDLE_ATTR = "data-aa-handle"
OVERLAY_ID = "__autoAcceptBgOverlay"
OVERLAY_STYLE_ID = "__autoAcceptBgStyles"
SUMMARY_WIDGET_ID = "__autoAcceptSummaryWidget"
SUMMARY_STYLE_ID = "__autoAcceptSummaryStyles"
SUMMARY_BUTTON_ID = "__autoAcceptSummaryButton"
SUMMARY_STATUS_ID = "__autoAcceptSummaryStatus"
SUMMARY_BODY_ID = "__autoAcceptSummaryBody"

MAX_FRAME_DEPTH = 4

BUTTON_SELECTORS = {
    "antigravity": [".bg-ide-button-background", "button.bg-primary", "button.rounded-l"],
    "cursor": ["button", '[class*="button"]', '[class*="anysphere"]'],
}

CURSOR_TAB_SELECTORS = [
    '#workbench\\.parts\\.auxiliarybar ul[role="tablist"] li[role="tab"]',
    '.monaco-pane-view .monaco-list-row[role="listitem"]',
    'div[role="tablist"] div[role="tab"]',
    ".chat-session-item",
]
ANTIGRAVITY_TAB_SELECTOR = "button.grow"
NEW_CONVERSATION_SELECTOR = "[data-tooltip-id='new-conversation-tooltip']"

PANEL_SELECTORS = [
    "#antigravity\\.agentPanel",
    "#workbench\\.parts\\.auxiliarybar",
    ".auxiliary-bar-container",
    "#workbench\\.parts\\.sidebar",
]

CONVERSATION_TEXT_SELECTORS = [
    '[data-role="assistant"]',
    '[data-testid*="assistant"]',
    ".assistant",
    ".message.assistant",
    ".chat-message",
    ".markdown",
    "article",
    "p",
    "li",
    "pre",
    "code",
]

# Shared prelude: document walking, handle stamping, panel lookup.
_PRELUDE = (
    """
const __aaHandleAttr = %(handle_attr)s;
const __aaDocs = (root, depth) => {
    const docs = [root];
    if (depth >= %(max_depth)d) return docs;
    try {
        for (const frame of root.querySelectorAll('iframe, frame')) {
            try {
                const d = frame.contentDocument || (frame.contentWindow && frame.contentWindow.document);
                if (d) docs.push(...__aaDocs(d, depth + 1));
            } catch (e) {}
        }
    } catch (e) {}
    return docs;
};
const __aaQueryAll = (selector) => {
    const out = [];
    for (const doc of __aaDocs(document, 0)) {
        try { out.push(...Array.from(doc.querySelectorAll(selector))); } catch (e) {}
    }
    return out;
};
const __aaHandle = (el) => {
    let h = el.getAttribute(__aaHandleAttr);
    if (!h) {
        window.__autoAcceptHandleSeq = (window.__autoAcceptHandleSeq || 0) + 1;
        h = 'aa' + window.__autoAcceptHandleSeq;
        el.setAttribute(__aaHandleAttr, h);
    }
    return h;
};
const __aaByHandle = (h) => __aaQueryAll('[' + __aaHandleAttr + '="' + h + '"]')[0] || null;
const __aaPanel = () => {
    for (const sel of %(panels)s) {
        const found = __aaQueryAll(sel).find(p => p.offsetWidth > 50 && p.offsetHeight > 50);
        if (found) return found;
    }
    return null;
};
const __aaVisible = (el) => {
    try {
        const st = window.getComputedStyle(el);
        if (!st || st.display === 'none' || st.visibility === 'hidden' || st.opacity === '0') return false;
        const r = el.getBoundingClientRect();
        return r.width > 0 && r.height > 0;
    } catch (e) { return false; }
};
"""
    % {
        "handle_attr": json.dumps(HANDLE_ATTR),
        "max_depth": MAX_FRAME_DEPTH,
        "panels": json.dumps(PANEL_SELECTORS),
    }
)


def _iife(body: str) -> str:
    return "(() => {\n" + _PRELUDE + body + "\n})()"


def collect_snapshot_js(ide: str) -> str:
    """Snapshot candidate controls, user-input and summary-click timestamps.

    Also installs (once per document) a capturing mousedown listener that stamps
    `window.__autoAcceptLastUserInput`.
    """
    selectors = BUTTON_SELECTORS.get(ide, BUTTON_SELECTORS["cursor"])
    body = """
const selectors = %(selectors)s;
const onInput = () => { window.__autoAcceptLastUserInput = Date.now(); };
for (const doc of __aaDocs(document, 0)) {
    try {
        if (!doc.__autoAcceptInputListener) {
            doc.addEventListener('mousedown', onInput, true);
            doc.__autoAcceptInputListener = onInput;
        }
    } catch (e) {}
}
const codeText = (node) => {
    const out = [];
    try {
        if (node.tagName === 'PRE' || node.tagName === 'CODE') {
            const t = (node.textContent || '').trim();
            if (t) out.push(t);
        }
        for (const c of node.querySelectorAll('pre, code')) {
            const t = (c.textContent || '').trim();
            if (t && t.length < %(max_block)d) out.push(t);
        }
    } catch (e) {}
    return out;
};
const seen = new Set();
const candidates = [];
for (const sel of selectors) {
    for (const el of __aaQueryAll(sel)) {
        if (seen.has(el)) continue;
        seen.add(el);
        try {
            const label = (el.textContent || '').trim();
            if (!label || label.length > %(max_label)d) continue;
            const context = [];
            let container = el.parentElement;
            let gathered = 0;
            for (let depth = 0; container && depth < %(max_levels)d; depth++) {
                let sib = container.previousElementSibling;
                for (let i = 0; sib && i < %(max_siblings)d; i++) {
                    for (const t of codeText(sib)) { context.push({text: t, depth, sibling: i}); gathered += t.length; }
                    sib = sib.previousElementSibling;
                }
                if (gathered > %(enough)d) break;
                container = container.parentElement;
            }
            const siblings = [];
            let bs = el.previousElementSibling;
            for (let i = 0; bs && i < %(max_button_siblings)d; i++) {
                for (const t of codeText(bs)) siblings.push({text: t, depth: 0, sibling: i});
                bs = bs.previousElementSibling;
            }
            const view = el.ownerDocument.defaultView || window;
            const st = view.getComputedStyle(el);
            const r = el.getBoundingClientRect();
            candidates.push({
                handle: __aaHandle(el),
                label,
                ariaLabel: el.getAttribute('aria-label') || '',
                title: el.getAttribute('title') || '',
                context,
                siblings,
                width: r.width,
                height: r.height,
                disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
                pointerEvents: st.pointerEvents,
                display: st.display,
                visibility: st.visibility,
                hidden: !!el.hidden,
            });
        } catch (e) {}
    }
}
return {
    candidates,
    userInputAt: window.__autoAcceptLastUserInput || 0,
    summaryClickAt: window.__autoAcceptSummaryClickAt || 0,
};
""" % {
        "selectors": json.dumps(selectors),
        "max_block": 5000,
        "max_label": 50,
        "max_levels": 10,
        "max_siblings": 5,
        "enough": 10,
        "max_button_siblings": 3,
    }
    return _iife(body)


def activate_js(handle: str) -> str:
    body = """
const el = __aaByHandle(%s);
if (!el) return false;
const view = el.ownerDocument.defaultView || window;
el.dispatchEvent(new view.MouseEvent('click', { view, bubbles: true, cancelable: true }));
return true;
""" % json.dumps(handle)
    return _iife(body)


REMOVE_INPUT_LISTENER_JS = _iife(
    """
for (const doc of __aaDocs(document, 0)) {
    try {
        if (doc.__autoAcceptInputListener) {
            doc.removeEventListener('mousedown', doc.__autoAcceptInputListener, true);
            doc.__autoAcceptInputListener = null;
        }
    } catch (e) {}
}
window.__autoAcceptLastUserInput = 0;
return true;
"""
)


def list_tabs_js(ide: str) -> str:
    selectors = [ANTIGRAVITY_TAB_SELECTOR] if ide == "antigravity" else CURSOR_TAB_SELECTORS
    body = """
for (const sel of %s) {
    const tabs = __aaQueryAll(sel);
    if (!tabs.length) continue;
    return tabs.map(t => ({
        handle: __aaHandle(t),
        text: (t.innerText || t.textContent || ''),
        ariaLabel: t.getAttribute('aria-label') || '',
    }));
}
return [];
""" % json.dumps(selectors)
    return _iife(body)


OPEN_CONVERSATION_PANEL_JS = _iife(
    """
const btn = __aaQueryAll(%s)[0];
if (!btn) return false;
btn.click();
return true;
"""
    % json.dumps(NEW_CONVERSATION_SELECTOR)
)

COMPLETION_SIGNAL_JS = _iife(
    """
const feedback = __aaQueryAll('span').filter(s => {
    const t = (s.textContent || '').trim();
    return t === 'Good' || t === 'Bad';
}).length;
let diagnostics = false;
for (const badge of __aaQueryAll('.codicon-error, .codicon-warning, [class*="marker-count"]')) {
    const n = parseInt((badge.textContent || '').trim(), 10);
    if (!isNaN(n) && n > 0) { diagnostics = true; break; }
}
if (!diagnostics && __aaQueryAll('.squiggly-error').length > 0) diagnostics = true;
return { feedback, diagnostics };
"""
)


def visible_text_js(max_chars: int) -> str:
    body = """
const maxChars = %(max)d;
const root = __aaPanel() || document.body;
if (!root) return '';
const snippets = [];
const seen = new Set();
let total = 0;
outer:
for (const sel of %(selectors)s) {
    let els = [];
    try { els = Array.from(root.querySelectorAll(sel)); } catch (e) { els = []; }
    for (const el of els) {
        if (!__aaVisible(el)) continue;
        let text = (el.innerText || el.textContent || '').replace(/\\s+/g, ' ').trim();
        if (text.length < 24) continue;
        if (text.length > 1800) text = text.slice(0, 1800) + '...';
        const key = text.slice(0, 160);
        if (seen.has(key)) continue;
        seen.add(key);
        snippets.push(text);
        total += text.length + 2;
        if (total >= maxChars) break outer;
    }
}
if (!snippets.length) return (root.innerText || '').replace(/\\s+/g, ' ').trim().slice(0, maxChars);
return snippets.join('\\n\\n').slice(0, maxChars);
""" % {"max": int(max_chars), "selectors": json.dumps(CONVERSATION_TEXT_SELECTORS)}
    return _iife(body)


OVERLAY_STYLES = """
#__autoAcceptBgOverlay { position: fixed; background: rgba(0,0,0,0.97); z-index: 2147483647;
  font-family: system-ui, -apple-system, sans-serif; color: #fff; display: flex; flex-direction: column;
  justify-content: center; align-items: center; pointer-events: none; opacity: 0;
  transition: opacity 0.3s ease; overflow: hidden; }
#__autoAcceptBgOverlay.visible { opacity: 1; }
.aab-container { width: 90%; max-width: 420px; padding: 24px; }
.aab-slot { margin-bottom: 16px; padding: 12px 16px; background: rgba(255,255,255,0.03);
  border-radius: 8px; border: 1px solid rgba(255,255,255,0.08); }
.aab-header { display: flex; align-items: center; margin-bottom: 8px; gap: 10px; }
.aab-name { flex: 1; font-size: 13px; font-weight: 500; white-space: nowrap; overflow: hidden;
  text-overflow: ellipsis; color: #e0e0e0; }
.aab-status { font-size: 10px; font-weight: 600; letter-spacing: 0.5px; text-transform: uppercase;
  padding: 3px 8px; border-radius: 4px; }
.aab-slot.in-progress .aab-status { color: #a855f7; background: rgba(168,85,247,0.15); }
.aab-slot.completed .aab-status { color: #22c55e; background: rgba(34,197,94,0.15); }
.aab-slot.errors .aab-status { color: #f59e0b; background: rgba(245,158,11,0.15); }
.aab-progress-track { height: 4px; background: rgba(255,255,255,0.08); border-radius: 2px; overflow: hidden; }
.aab-progress-fill { height: 100%; border-radius: 2px; transition: width 0.4s ease, background 0.3s ease; }
.aab-slot.in-progress .aab-progress-fill { width: 60%; background: linear-gradient(90deg, #a855f7, #8b5cf6); }
.aab-slot.completed .aab-progress-fill, .aab-slot.errors .aab-progress-fill { width: 100%;
  background: linear-gradient(90deg, #22c55e, #16a34a); }
"""

SUMMARY_STYLES = """
#__autoAcceptSummaryWidget { position: fixed; z-index: 2147483646; width: 340px; max-height: 60vh;
  padding: 12px; border-radius: 10px; border: 1px solid rgba(255,255,255,0.14);
  background: rgba(12,12,16,0.96); color: #f6f6f6; box-shadow: 0 12px 28px rgba(0,0,0,0.4);
  display: flex; flex-direction: column; gap: 8px; font-family: system-ui, -apple-system, sans-serif; }
#__autoAcceptSummaryWidget .aas-title { font-size: 12px; font-weight: 600; letter-spacing: 0.2px; }
#__autoAcceptSummaryButton { height: 30px; border: 0; border-radius: 6px; background: #2563eb; color: #fff;
  cursor: pointer; font-size: 12px; font-weight: 600; }
#__autoAcceptSummaryButton[disabled] { opacity: 0.6; cursor: default; }
#__autoAcceptSummaryStatus { font-size: 11px; min-height: 15px; opacity: 0.8; }
#__autoAcceptSummaryBody { white-space: pre-wrap; font-size: 12px; line-height: 1.45; overflow: auto; max-height: 42vh; }
#__autoAcceptSummaryWidget.error #__autoAcceptSummaryStatus { color: #fca5a5; }
"""


def _ids() -> dict[str, str]:
    return {
        "overlay_id": json.dumps(OVERLAY_ID),
        "overlay_style_id": json.dumps(OVERLAY_STYLE_ID),
        "overlay_styles": json.dumps(OVERLAY_STYLES),
        "widget_id": json.dumps(SUMMARY_WIDGET_ID),
        "widget_style_id": json.dumps(SUMMARY_STYLE_ID),
        "widget_styles": json.dumps(SUMMARY_STYLES),
        "button_id": json.dumps(SUMMARY_BUTTON_ID),
        "status_id": json.dumps(SUMMARY_STATUS_ID),
        "body_id": json.dumps(SUMMARY_BODY_ID),
    }


MOUNT_OVERLAY_JS = _iife(
    """
if (document.getElementById(%(overlay_id)s)) return false;
if (!document.getElementById(%(overlay_style_id)s)) {
    const style = document.createElement('style');
    style.id = %(overlay_style_id)s;
    style.textContent = %(overlay_styles)s;
    document.head.appendChild(style);
}
const overlay = document.createElement('div');
overlay.id = %(overlay_id)s;
const container = document.createElement('div');
container.className = 'aab-container';
container.id = %(overlay_id)s + '-c';
overlay.appendChild(container);
document.body.appendChild(overlay);
const panel = __aaPanel();
const sync = () => {
    if (panel) {
        const r = panel.getBoundingClientRect();
        overlay.style.top = r.top + 'px';
        overlay.style.left = r.left + 'px';
        overlay.style.width = r.width + 'px';
        overlay.style.height = r.height + 'px';
    } else {
        overlay.style.top = '0'; overlay.style.left = '0';
        overlay.style.width = '100%%'; overlay.style.height = '100%%';
    }
};
sync();
if (panel && window.ResizeObserver) {
    const ro = new ResizeObserver(sync);
    ro.observe(panel);
    overlay._resizeObserver = ro;
}
requestAnimationFrame(() => overlay.classList.add('visible'));
return true;
"""
    % _ids()
)

DISMOUNT_OVERLAY_JS = _iife(
    """
const overlay = document.getElementById(%(overlay_id)s);
const style = document.getElementById(%(overlay_style_id)s);
if (style) style.remove();
if (!overlay) return false;
if (overlay._resizeObserver) overlay._resizeObserver.disconnect();
overlay.remove();
return true;
"""
    % _ids()
)


def render_tabs_js(rows: list[dict[str, object]]) -> str:
    """Replace the overlay rows; each row is {name, state} with state in-progress/completed/errors."""
    body = """
const container = document.getElementById(%(overlay_id)s + '-c');
if (!container) return false;
while (container.firstChild) container.removeChild(container.firstChild);
for (const row of %(rows)s) {
    const slot = document.createElement('div');
    slot.className = 'aab-slot ' + row.state;
    slot.setAttribute('data-name', row.name);
    const header = document.createElement('div');
    header.className = 'aab-header';
    const name = document.createElement('span');
    name.className = 'aab-name';
    name.textContent = row.name;
    const status = document.createElement('span');
    status.className = 'aab-status';
    status.textContent = row.state === 'in-progress' ? 'IN PROGRESS' : 'COMPLETED';
    header.appendChild(name);
    header.appendChild(status);
    slot.appendChild(header);
    const track = document.createElement('div');
    track.className = 'aab-progress-track';
    const fill = document.createElement('div');
    fill.className = 'aab-progress-fill';
    track.appendChild(fill);
    slot.appendChild(track);
    container.appendChild(slot);
}
return true;
""" % {**_ids(), "rows": json.dumps(rows)}
    return _iife(body)


def mark_completed_js(name: str, state: str) -> str:
    body = """
const container = document.getElementById(%(overlay_id)s + '-c');
if (!container) return false;
for (const slot of container.querySelectorAll('.aab-slot')) {
    if (slot.getAttribute('data-name') !== %(name)s) continue;
    slot.classList.remove('in-progress');
    slot.classList.add(%(state)s);
    const status = slot.querySelector('.aab-status');
    if (status) status.textContent = 'COMPLETED';
    return true;
}
return false;
""" % {**_ids(), "name": json.dumps(name), "state": json.dumps(state)}
    return _iife(body)


OVERLAY_ROW_COUNT_JS = _iife(
    """
const container = document.getElementById(%(overlay_id)s + '-c');
return container ? container.children.length : -1;
"""
    % _ids()
)

MOUNT_SUMMARY_WIDGET_JS = _iife(
    """
if (document.getElementById(%(widget_id)s)) return false;
if (!document.getElementById(%(widget_style_id)s)) {
    const style = document.createElement('style');
    style.id = %(widget_style_id)s;
    style.textContent = %(widget_styles)s;
    document.head.appendChild(style);
}
const widget = document.createElement('div');
widget.id = %(widget_id)s;
const title = document.createElement('div');
title.className = 'aas-title';
title.textContent = 'Auto Accept Session Recap';
const button = document.createElement('button');
button.id = %(button_id)s;
button.type = 'button';
button.textContent = 'Summarize Session';
const status = document.createElement('div');
status.id = %(status_id)s;
status.textContent = 'Click to generate a recap for this session.';
const body = document.createElement('div');
body.id = %(body_id)s;
widget.append(title, button, status, body);
document.body.appendChild(widget);
const panel = __aaPanel();
const sync = () => {
    if (panel) {
        const r = panel.getBoundingClientRect();
        widget.style.left = Math.max(8, r.right - widget.offsetWidth - 12) + 'px';
        widget.style.top = Math.max(8, r.bottom - Math.min(r.height - 10, widget.offsetHeight + 12)) + 'px';
    } else {
        widget.style.right = '18px'; widget.style.bottom = '18px';
        widget.style.left = 'auto'; widget.style.top = 'auto';
    }
};
sync();
widget._onWindowResize = sync;
window.addEventListener('resize', sync);
if (panel && window.ResizeObserver) {
    const ro = new ResizeObserver(sync);
    ro.observe(panel);
    widget._resizeObserver = ro;
}
button.addEventListener('click', () => {
    if (button.disabled) return;
    window.__autoAcceptSummaryClickAt = Date.now();
    button.disabled = true;
    button.textContent = 'Summarizing...';
    status.textContent = 'Generating session recap...';
});
return true;
"""
    % _ids()
)

DISMOUNT_SUMMARY_WIDGET_JS = _iife(
    """
const widget = document.getElementById(%(widget_id)s);
const style = document.getElementById(%(widget_style_id)s);
if (style) style.remove();
if (!widget) return false;
if (widget._resizeObserver) widget._resizeObserver.disconnect();
if (widget._onWindowResize) window.removeEventListener('resize', widget._onWindowResize);
widget.remove();
return true;
"""
    % _ids()
)


def summary_state_js(status: str, *, text: str = "", message: str = "", generated_at: str = "") -> str:
    body = """
const widget = document.getElementById(%(widget_id)s);
if (!widget) return false;
const button = document.getElementById(%(button_id)s);
const status = document.getElementById(%(status_id)s);
const body = document.getElementById(%(body_id)s);
const kind = %(kind)s;
widget.classList.toggle('error', kind === 'error');
const set = (label, disabled, line) => {
    if (button) { button.disabled = disabled; button.textContent = label; }
    if (status) status.textContent = line;
};
if (kind === 'loading') set('Summarizing...', true, 'Generating session recap...');
else if (kind === 'success') {
    set('Regenerate Summary', false, 'Updated ' + (%(generated)s || new Date().toLocaleTimeString()));
    if (body) body.textContent = %(text)s;
} else if (kind === 'error') set('Retry Summary', false, %(message)s || 'Failed to generate summary.');
else set('Summarize Session', false, 'Click to generate a recap for this session.');
return true;
""" % {
        **_ids(),
        "kind": json.dumps(status),
        "text": json.dumps(text),
        "message": json.dumps(message),
        "generated": json.dumps(generated_at),
    }
    return _iife(body)

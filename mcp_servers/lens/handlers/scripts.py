"""In-page JavaScript used by the automation backends.

Every snippet is a function expression; callers invoke it with JSON-encoded
arguments through ``invoke_expression``. Element lookups share the prelude
below so descriptors look the same whichever backend produced them.
"""

from __future__ import annotations

import json
from typing import Any


def invoke_expression(function_source: str, *args: Any) -> str:
    """Build ``(fn)(arg1, arg2, ...)`` with JSON-encoded arguments."""
    encoded = ", ".join(json.dumps(a) for a in args)
    return f"({function_source})({encoded})"


_PRELUDE = r"""
  const query = (selector) => {
    try {
      return document.querySelector(selector);
    } catch (e) {
      throw new Error('Invalid selector: ' + selector);
    }
  };
  const cssPath = (el) => {
    if (el.id) return '#' + CSS.escape(el.id);
    const parts = [];
    let node = el;
    while (node && node.nodeType === 1 && node !== document.documentElement && parts.length < 8) {
      if (node.id) { parts.unshift('#' + CSS.escape(node.id)); break; }
      let part = node.tagName.toLowerCase();
      const parent = node.parentElement;
      if (parent) {
        const same = Array.from(parent.children).filter(c => c.tagName === node.tagName);
        if (same.length > 1) part += ':nth-of-type(' + (same.indexOf(node) + 1) + ')';
      }
      parts.unshift(part);
      node = parent;
    }
    return parts.join(' > ');
  };
  const isShown = (el) => {
    const st = window.getComputedStyle(el);
    if (st.display === 'none' || st.visibility === 'hidden' || st.visibility === 'collapse') return false;
    const r = el.getBoundingClientRect();
    return r.width > 0 && r.height > 0;
  };
  const describe = (el, selector) => {
    const rect = el.getBoundingClientRect();
    const styles = window.getComputedStyle(el);
    return {
      tagName: el.tagName.toLowerCase(),
      id: el.id || null,
      classes: Array.from(el.classList),
      selector: selector || cssPath(el),
      attributes: Object.fromEntries(Array.from(el.attributes).map(a => [a.name, a.value])),
      computedStyles: {
        display: styles.display,
        position: styles.position,
        width: styles.width,
        height: styles.height,
        margin: styles.margin,
        padding: styles.padding,
        color: styles.color,
        backgroundColor: styles.backgroundColor,
        fontSize: styles.fontSize,
        fontFamily: styles.fontFamily,
      },
      boundingBox: {
        x: Math.round(rect.x),
        y: Math.round(rect.y),
        width: Math.round(rect.width),
        height: Math.round(rect.height),
      },
      text: (el.innerText || el.textContent || '').trim().slice(0, 200),
      childCount: el.childElementCount,
    };
  };
"""


def _fn(params: str, body: str, *, is_async: bool = False) -> str:
    prefix = "async " if is_async else ""
    return f"{prefix}({params}) => {{{_PRELUDE}{body}}}"


INSPECT_ELEMENT = _fn(
    "selector",
    r"""
  const el = selector ? query(selector) : window.__lensLastElement;
  if (!el || !el.isConnected) return null;
  window.__lensLastElement = el;
  return describe(el, selector || '');
""",
)

INSPECT_AT_POINT = _fn(
    "x, y",
    r"""
  const el = document.elementFromPoint(x, y);
  if (!el) return null;
  window.__lensLastElement = el;
  return describe(el, '');
""",
)

QUERY_ELEMENT = _fn(
    "selector, visible",
    r"""
  const el = query(selector);
  if (!el) return null;
  if (visible && !isShown(el)) return null;
  return describe(el, selector);
""",
)

# Scrolls the element into view and returns its viewport rect, or null.
ELEMENT_RECT = _fn(
    "selector",
    r"""
  const el = query(selector);
  if (!el) return null;
  el.scrollIntoView({block: 'center', inline: 'center'});
  const r = el.getBoundingClientRect();
  return {
    x: r.left, y: r.top, width: r.width, height: r.height,
    cx: r.left + r.width / 2, cy: r.top + r.height / 2,
    dpr: window.devicePixelRatio || 1,
  };
""",
)

HIGHLIGHT = _fn(
    "selector, color, duration",
    r"""
  const el = query(selector);
  if (!el) return false;
  document.querySelectorAll('.mcp-lens-highlight').forEach(h => h.remove());
  const rect = el.getBoundingClientRect();
  const box = document.createElement('div');
  box.className = 'mcp-lens-highlight';
  box.style.cssText = [
    'position: fixed',
    'left: ' + rect.left + 'px',
    'top: ' + rect.top + 'px',
    'width: ' + rect.width + 'px',
    'height: ' + rect.height + 'px',
    'border: 2px solid ' + color,
    'background: ' + color + '33',
    'pointer-events: none',
    'z-index: 2147483647',
    'transition: opacity 0.3s',
  ].join(';');
  document.body.appendChild(box);
  if (duration > 0) {
    setTimeout(() => {
      box.style.opacity = '0';
      setTimeout(() => box.remove(), 300);
    }, duration);
  }
  return true;
""",
)

CLEAR_HIGHLIGHTS = """() => {
  const boxes = document.querySelectorAll('.mcp-lens-highlight');
  boxes.forEach(el => el.remove());
  return boxes.length;
}"""

CLICK = _fn(
    "selector, button, clickCount",
    r"""
  const el = query(selector);
  if (!el) return false;
  el.scrollIntoView({block: 'center', inline: 'center'});
  const rect = el.getBoundingClientRect();
  const init = {
    bubbles: true, cancelable: true, view: window,
    clientX: rect.left + rect.width / 2, clientY: rect.top + rect.height / 2,
    button: button === 'middle' ? 1 : button === 'right' ? 2 : 0,
  };
  for (let i = 1; i <= clickCount; i++) {
    el.dispatchEvent(new MouseEvent('mousedown', {...init, detail: i}));
    if (typeof el.focus === 'function') el.focus();
    el.dispatchEvent(new MouseEvent('mouseup', {...init, detail: i}));
    if (button === 'right') {
      el.dispatchEvent(new MouseEvent('contextmenu', init));
    } else if (i === 1 && typeof el.click === 'function' && button === 'left') {
      el.click();
    } else {
      el.dispatchEvent(new MouseEvent('click', {...init, detail: i}));
    }
  }
  if (clickCount >= 2) el.dispatchEvent(new MouseEvent('dblclick', {...init, detail: 2}));
  return true;
""",
)

# Focuses the element and optionally clears it; false when missing.
FOCUS = _fn(
    "selector, clear",
    r"""
  const el = query(selector);
  if (!el) return false;
  el.scrollIntoView({block: 'center', inline: 'center'});
  if (typeof el.focus === 'function') el.focus();
  if (clear) {
    if ('value' in el) {
      el.value = '';
    } else if (el.isContentEditable) {
      el.textContent = '';
    }
    el.dispatchEvent(new Event('input', {bubbles: true}));
  }
  return true;
""",
)

TYPE_TEXT = _fn(
    "selector, text, clearFirst, delay",
    r"""
  const el = query(selector);
  if (!el) return false;
  if (typeof el.focus === 'function') el.focus();
  const hasValue = 'value' in el;
  if (clearFirst) {
    if (hasValue) el.value = ''; else if (el.isContentEditable) el.textContent = '';
    el.dispatchEvent(new Event('input', {bubbles: true}));
  }
  for (const ch of text) {
    el.dispatchEvent(new KeyboardEvent('keydown', {key: ch, bubbles: true}));
    el.dispatchEvent(new KeyboardEvent('keypress', {key: ch, bubbles: true}));
    if (hasValue) el.value = (el.value || '') + ch;
    else if (el.isContentEditable) el.textContent = (el.textContent || '') + ch;
    el.dispatchEvent(new InputEvent('input', {data: ch, inputType: 'insertText', bubbles: true}));
    el.dispatchEvent(new KeyboardEvent('keyup', {key: ch, bubbles: true}));
    if (delay > 0) await new Promise(r => setTimeout(r, delay));
  }
  el.dispatchEvent(new Event('change', {bubbles: true}));
  return true;
""",
    is_async=True,
)

FILL = _fn(
    "selector, value",
    r"""
  const el = query(selector);
  if (!el) return false;
  if (typeof el.focus === 'function') el.focus();
  if ('value' in el) {
    const proto = Object.getPrototypeOf(el);
    const desc = Object.getOwnPropertyDescriptor(proto, 'value');
    if (desc && desc.set) desc.set.call(el, value); else el.value = value;
  } else if (el.isContentEditable) {
    el.textContent = value;
  } else {
    throw new Error('Element is not fillable: ' + selector);
  }
  el.dispatchEvent(new Event('input', {bubbles: true}));
  el.dispatchEvent(new Event('change', {bubbles: true}));
  return true;
""",
)

SELECT_OPTION = _fn(
    "selector, values",
    r"""
  const el = query(selector);
  if (!el) return null;
  if (el.tagName.toLowerCase() !== 'select') throw new Error('Element is not a <select>: ' + selector);
  const wanted = new Set(values);
  const selected = [];
  let matchedAny = false;
  for (const opt of Array.from(el.options)) {
    const hit = wanted.has(opt.value) || wanted.has(opt.label) || wanted.has(opt.text.trim());
    if (hit && (el.multiple || !matchedAny)) {
      opt.selected = true;
      matchedAny = true;
      selected.push(opt.value);
    } else if (el.multiple) {
      opt.selected = false;
    }
  }
  if (!matchedAny) throw new Error('No option matches ' + JSON.stringify(values));
  el.dispatchEvent(new Event('input', {bubbles: true}));
  el.dispatchEvent(new Event('change', {bubbles: true}));
  return selected;
""",
)

HOVER = _fn(
    "selector",
    r"""
  const el = query(selector);
  if (!el) return false;
  el.scrollIntoView({block: 'center', inline: 'center'});
  const rect = el.getBoundingClientRect();
  const init = {bubbles: true, cancelable: true, view: window,
                clientX: rect.left + rect.width / 2, clientY: rect.top + rect.height / 2};
  el.dispatchEvent(new MouseEvent('mouseover', init));
  el.dispatchEvent(new MouseEvent('mouseenter', {...init, bubbles: false}));
  el.dispatchEvent(new MouseEvent('mousemove', init));
  return true;
""",
)

PRESS_KEY = _fn(
    "key",
    r"""
  const target = document.activeElement || document.body;
  const parts = key.split('+').filter(Boolean);
  const main = key.endsWith('++') ? '+' : parts[parts.length - 1];
  const mods = new Set(parts.slice(0, -1));
  const init = {
    key: main, bubbles: true, cancelable: true,
    ctrlKey: mods.has('Control') || mods.has('Ctrl'), shiftKey: mods.has('Shift'),
    altKey: mods.has('Alt'), metaKey: mods.has('Meta') || mods.has('Cmd'),
  };
  const proceed = target.dispatchEvent(new KeyboardEvent('keydown', init));
  if (proceed && main.length === 1 && !init.ctrlKey && !init.metaKey && 'value' in target) {
    target.value = (target.value || '') + main;
    target.dispatchEvent(new InputEvent('input', {data: main, inputType: 'insertText', bubbles: true}));
  }
  if (proceed && main === 'Enter' && target.form && typeof target.form.requestSubmit === 'function') {
    target.form.requestSubmit();
  }
  target.dispatchEvent(new KeyboardEvent('keyup', init));
  return true;
""",
)

DRAG_AND_DROP = _fn(
    "source, target",
    r"""
  const src = query(source);
  if (!src) return 'source';
  const dst = query(target);
  if (!dst) return 'target';
  const center = (el) => {
    const r = el.getBoundingClientRect();
    return {clientX: r.left + r.width / 2, clientY: r.top + r.height / 2};
  };
  const dt = new DataTransfer();
  const fire = (el, type, pos) => el.dispatchEvent(
    new DragEvent(type, {bubbles: true, cancelable: true, dataTransfer: dt, ...pos}));
  const a = center(src);
  const b = center(dst);
  src.dispatchEvent(new MouseEvent('mousedown', {bubbles: true, ...a}));
  fire(src, 'dragstart', a);
  fire(dst, 'dragenter', b);
  fire(dst, 'dragover', b);
  fire(dst, 'drop', b);
  fire(src, 'dragend', b);
  dst.dispatchEvent(new MouseEvent('mouseup', {bubbles: true, ...b}));
  return null;
""",
)

SCROLL = _fn(
    "selector, dx, dy",
    r"""
  if (selector) {
    const el = query(selector);
    if (!el) return false;
    el.scrollIntoView({block: 'center', inline: 'nearest'});
    return true;
  }
  window.scrollBy(dx, dy);
  return true;
""",
)

GET_TEXT = _fn(
    "selector",
    r"""
  const el = query(selector);
  if (!el) return {found: false};
  return {found: true, value: el.textContent || ''};
""",
)

GET_ATTRIBUTE = _fn(
    "selector, name",
    r"""
  const el = query(selector);
  if (!el) return {found: false};
  return {found: true, value: el.getAttribute(name)};
""",
)

ELEMENT_FLAGS = _fn(
    "selector",
    r"""
  const el = query(selector);
  if (!el) return {found: false};
  const disabled = el.disabled === true || el.getAttribute('aria-disabled') === 'true'
    || !!el.closest('fieldset[disabled]');
  let checked = null;
  if ('checked' in el && (el.type === 'checkbox' || el.type === 'radio')) checked = !!el.checked;
  else if (el.hasAttribute('aria-checked')) checked = el.getAttribute('aria-checked') === 'true';
  return {found: true, visible: isShown(el), enabled: !disabled, checked: checked};
""",
)

ACCESSIBILITY_TREE = r"""(maxDepth) => {
  const IMPLICIT = {
    a: 'link', button: 'button', nav: 'navigation', main: 'main', header: 'banner',
    footer: 'contentinfo', form: 'form', img: 'img', ul: 'list', ol: 'list', li: 'listitem',
    table: 'table', tr: 'row', td: 'cell', th: 'columnheader', select: 'combobox',
    textarea: 'textbox', h1: 'heading', h2: 'heading', h3: 'heading', h4: 'heading',
    h5: 'heading', h6: 'heading', dialog: 'dialog', aside: 'complementary',
  };
  const SKIP = new Set(['script', 'style', 'noscript', 'template', 'meta', 'link']);
  const roleOf = (el) => {
    const explicit = el.getAttribute('role');
    if (explicit) return explicit;
    const tag = el.tagName.toLowerCase();
    if (tag === 'input') {
      const t = (el.getAttribute('type') || 'text').toLowerCase();
      if (t === 'checkbox' || t === 'radio') return t;
      if (t === 'submit' || t === 'button' || t === 'reset') return 'button';
      return 'textbox';
    }
    return IMPLICIT[tag] || tag;
  };
  const nameOf = (el) => {
    const label = el.getAttribute('aria-label') || el.getAttribute('alt') || el.getAttribute('title');
    if (label) return label;
    if (el.id) {
      const forLabel = document.querySelector('label[for="' + CSS.escape(el.id) + '"]');
      if (forLabel) return forLabel.textContent.trim().slice(0, 50);
    }
    if (el.getAttribute('placeholder')) return el.getAttribute('placeholder');
    return el.textContent ? el.textContent.trim().replace(/\s+/g, ' ').slice(0, 50) : '';
  };
  const build = (el, depth) => {
    if (depth > maxDepth) return null;
    if (SKIP.has(el.tagName.toLowerCase())) return null;
    if (el.getAttribute('aria-hidden') === 'true') return null;
    const node = {role: roleOf(el), name: nameOf(el)};
    const children = [];
    for (const child of Array.from(el.children)) {
      const sub = build(child, depth + 1);
      if (sub) children.push(sub);
    }
    if (children.length) node.children = children;
    return node;
  };
  return document.body ? build(document.body, 0) : null;
}"""

# Resource Timing entries newer than ``since`` (performance.now() ms).
RESOURCE_ENTRIES = """(since) => {
  const entries = performance.getEntriesByType('resource')
    .filter(e => e.startTime >= since)
    .map(e => ({url: e.name, status: e.responseStatus || 0, startTime: e.startTime}));
  return {now: performance.now(), entries: entries};
}"""

PERFORMANCE_NOW = "() => performance.now()"

PAGE_INFO = """() => ({
  url: window.location.href,
  title: document.title,
  width: window.innerWidth,
  height: window.innerHeight,
  dpr: window.devicePixelRatio || 1,
})"""

# Raw element tree for Python-side serialization; text nodes keep their text.
DOM_TREE = r"""(maxDepth) => {
  const walk = (el, depth) => {
    const node = {
      tagName: el.tagName.toLowerCase(),
      id: el.id || null,
      classes: Array.from(el.classList),
      children: [],
    };
    if (depth >= maxDepth + 1) return node;
    for (const child of Array.from(el.childNodes)) {
      if (child.nodeType === 1) {
        node.children.push(walk(child, depth + 1));
      } else if (child.nodeType === 3) {
        const text = child.textContent.trim();
        if (text) node.children.push({type: 'text', text: text});
      }
    }
    return node;
  };
  return document.body ? walk(document.body, 0) : null;
}"""

HISTORY_BACK = "() => { window.history.back(); return true; }"
HISTORY_FORWARD = "() => { window.history.forward(); return true; }"

INSTALL_DIALOG_POLICY = r"""(accept) => {
  window.__lensDialogAccept = accept;
  if (window.__lensDialogPatched) return true;
  window.__lensDialogPatched = true;
  window.alert = () => undefined;
  window.confirm = () => !!window.__lensDialogAccept;
  window.prompt = (message, value) => (window.__lensDialogAccept ? (value || '') : null);
  return true;
}"""


__all__ = [
    "ACCESSIBILITY_TREE",
    "CLEAR_HIGHLIGHTS",
    "CLICK",
    "DOM_TREE",
    "DRAG_AND_DROP",
    "ELEMENT_FLAGS",
    "ELEMENT_RECT",
    "FILL",
    "FOCUS",
    "GET_ATTRIBUTE",
    "GET_TEXT",
    "HIGHLIGHT",
    "HISTORY_BACK",
    "HISTORY_FORWARD",
    "HOVER",
    "INSPECT_AT_POINT",
    "INSPECT_ELEMENT",
    "INSTALL_DIALOG_POLICY",
    "PAGE_INFO",
    "PERFORMANCE_NOW",
    "PRESS_KEY",
    "QUERY_ELEMENT",
    "RESOURCE_ENTRIES",
    "SCROLL",
    "SELECT_OPTION",
    "TYPE_TEXT",
    "invoke_expression",
]

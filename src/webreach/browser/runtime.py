"""In-page runtime and the bridge that talks to it.

All DOM work goes through one generic evaluator.  Python never builds
JavaScript by string concatenation: it sends a structured action descriptor
``{"op": ..., "args": {...}}`` to ``_DISPATCH_JS``, which hands it to the
runtime object installed once per document as ``window.__webreach``.

Two call shapes exist:

- ``PageBridge.call(op, **args)`` returns the op's JSON value.
- ``PageBridge.collect(op, **args)`` returns a ``NodeSet``: a live handle to
  the matched nodes plus their serialized ``ElementRecord`` facts.

Element handles (``ElementHandle``) may be passed inside ``args``; Playwright
marshals them into real DOM nodes on the page side.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from playwright.sync_api import Error as PlaywrightError

from webreach.exceptions import ScriptInjectionFailure, SessionNotReady
from webreach.models.elements import ElementRecord, Viewport

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, JSHandle, Page

logger = logging.getLogger(__name__)

# Playwright error substrings meaning the page (or its document) is gone.
_DETACHED_ERRORS: tuple[str, ...] = (
    "Target page, context or browser has been closed",
    "Target closed",
    "Execution context was destroyed",
    "Frame was detached",
    "frame was detached",
    "Browser has been closed",
)

MARKER_ATTR = "data-wr-marker"
GENERATION_ATTR = "data-wr-gen"

# ---------------------------------------------------------------------------
# Runtime source, installed once per document
# ---------------------------------------------------------------------------

RUNTIME_JS = r"""
() => {
    if (window.__webreach) return true;

    const MARKER = 'data-wr-marker';
    const GEN = 'data-wr-gen';
    const HOVER = 'data-wr-hover';
    const MODAL_SEL = '[role="dialog"], [aria-modal="true"], .modal, [data-testid="sheetDialog"]';
    const ACTIONABLE_SEL = 'a, button, [role="button"], [role="link"], input[type="submit"], input[type="button"]';
    const INTERACTIVE_SEL = [
        'a[href]', 'button', 'input:not([type="hidden"])', 'select', 'textarea', 'summary',
        '[role="button"]', '[role="link"]', '[role="checkbox"]', '[role="radio"]', '[role="tab"]',
        '[role="menuitem"]', '[role="option"]', '[role="switch"]', '[role="textbox"]',
        '[role="combobox"]', '[role="searchbox"]', '[role="slider"]',
        '[contenteditable="true"]', '[contenteditable=""]', '[onclick]', '[data-testid]',
        '[tabindex]:not([tabindex="-1"])'
    ].join(', ');
    const ATTRS = [
        'id', 'name', 'aria-label', 'aria-placeholder', 'placeholder', 'data-testid', 'title',
        'alt', 'href', 'aria-pressed', 'aria-checked', 'aria-selected', 'aria-expanded',
        'contenteditable', 'icon-name', 'upvote', 'downvote'
    ];

    // -- traversal -------------------------------------------------------

    function topFrame() {
        return { kind: 'document', ox: 0, oy: 0, depth: 0 };
    }

    function sameOriginDocument(frameEl) {
        try {
            const doc = frameEl.contentDocument;
            return doc && doc.documentElement ? doc : null;
        } catch (e) {
            return null;
        }
    }

    function iframeFrame(frameEl, parent) {
        const r = frameEl.getBoundingClientRect();
        return {
            kind: 'iframe',
            ox: parent.ox + r.left + (frameEl.clientLeft || 0),
            oy: parent.oy + r.top + (frameEl.clientTop || 0),
            depth: parent.depth + 1,
        };
    }

    // Frame context of an arbitrary node, computed by walking frameElement links.
    function frameOf(node) {
        let ox = 0, oy = 0, depth = 0;
        let win = (node.ownerDocument && node.ownerDocument.defaultView) || window;
        while (win && win !== window.top && win.frameElement) {
            const fe = win.frameElement;
            const r = fe.getBoundingClientRect();
            ox += r.left + (fe.clientLeft || 0);
            oy += r.top + (fe.clientTop || 0);
            depth += 1;
            win = fe.ownerDocument.defaultView;
        }
        const inShadow = node.getRootNode && node.getRootNode() instanceof ShadowRoot;
        const kind = inShadow ? 'shadow' : (depth > 0 ? 'iframe' : 'document');
        return { kind, ox, oy, depth };
    }

    function nestedRoots(entry) {
        const out = [];
        const root = entry.root;
        const f = entry.frame;
        if (root.nodeType === 1 && root.shadowRoot) {
            out.push({ root: root.shadowRoot, frame: { kind: 'shadow', ox: f.ox, oy: f.oy, depth: f.depth + 1 } });
        }
        for (const el of root.querySelectorAll('*')) {
            if (el.shadowRoot) {
                out.push({ root: el.shadowRoot, frame: { kind: 'shadow', ox: f.ox, oy: f.oy, depth: f.depth + 1 } });
            }
            if (el.tagName === 'IFRAME' || el.tagName === 'FRAME') {
                const doc = sameOriginDocument(el);
                if (doc) out.push({ root: doc, frame: iframeFrame(el, f) });
            }
        }
        return out;
    }

    function startEntries(within) {
        if (within) return [{ root: within, frame: frameOf(within) }];
        return [{ root: document, frame: topFrame() }];
    }

    // Visit every root (document, shadow roots, same-origin iframes) breadth first.
    function eachRoot(within, visit) {
        let level = startEntries(within);
        while (level.length) {
            const next = [];
            for (const entry of level) {
                visit(entry);
                next.push(...nestedRoots(entry));
            }
            level = next;
        }
    }

    // -- node facts ------------------------------------------------------

    function squash(s, max) {
        return (s || '').replace(/\s+/g, ' ').trim().slice(0, max || 200);
    }

    function textOf(el) {
        if (el.tagName === 'INPUT') {
            const t = (el.type || '').toLowerCase();
            if (t === 'submit' || t === 'button' || t === 'reset') return squash(el.value);
            return '';
        }
        return squash(el.innerText || el.textContent);
    }

    function idrefText(el, attr) {
        const ids = (el.getAttribute(attr) || '').split(/\s+/).filter(Boolean);
        if (!ids.length) return '';
        const root = el.getRootNode ? el.getRootNode() : el.ownerDocument;
        const parts = [];
        for (const id of ids) {
            const ref = (root.getElementById ? root.getElementById(id) : null) || el.ownerDocument.getElementById(id);
            if (ref) parts.push(squash(ref.textContent));
        }
        return parts.join(' ').trim();
    }

    function iconLabel(el) {
        const icon = el.querySelector('svg[aria-label], img[alt], [role="img"][aria-label], [title]');
        if (!icon) return '';
        return squash(icon.getAttribute('aria-label') || icon.getAttribute('title') || icon.getAttribute('alt'));
    }

    function labelForText(el) {
        if (el.id) {
            const root = el.getRootNode ? el.getRootNode() : el.ownerDocument;
            try {
                const lbl = root.querySelector('label[for="' + CSS.escape(el.id) + '"]');
                if (lbl) return squash(lbl.textContent);
            } catch (e) {}
        }
        const wrap = el.closest('label');
        if (wrap && wrap !== el) return squash(wrap.textContent);
        return '';
    }

    function record(el, frame, order, extra, modals) {
        const r = el.getBoundingClientRect();
        const win = (el.ownerDocument && el.ownerDocument.defaultView) || window;
        const cs = win.getComputedStyle(el);
        const attrs = {};
        for (const name of ATTRS) {
            const v = el.getAttribute(name);
            if (v !== null) attrs[name] = v;
        }
        const type = (el.getAttribute('type') || '').toLowerCase();
        return Object.assign({
            order: order,
            tag: el.tagName.toLowerCase(),
            role: el.getAttribute('role') || '',
            type: type,
            rect: { x: r.left, y: r.top, width: r.width, height: r.height },
            style: { display: cs.display, visibility: cs.visibility, opacity: cs.opacity },
            aria_hidden: el.getAttribute('aria-hidden') === 'true' || !!el.closest('[aria-hidden="true"]'),
            disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
            checked: (type === 'checkbox' || type === 'radio') ? !!el.checked : null,
            modal_layer: modalLayer(el, modals || openModals()),
            text: textOf(el),
            attrs: attrs,
            frame: frame,
        }, extra || {});
    }

    function viewport() {
        return { width: window.innerWidth, height: window.innerHeight };
    }

    function stackZ(el) {
        let z = 0;
        for (let n = el; n && n.nodeType === 1; n = n.parentElement) {
            const v = parseInt(window.getComputedStyle(n).zIndex, 10);
            if (!isNaN(v) && v > z) z = v;
        }
        return z;
    }

    // Visible open modals, bottom to top: z-index first, then document order.
    function openModals() {
        const open = [];
        document.querySelectorAll(MODAL_SEL).forEach((m, i) => {
            const cs = window.getComputedStyle(m);
            const r = m.getBoundingClientRect();
            if (r.width > 0 && r.height > 0 && cs.display !== 'none' && cs.visibility !== 'hidden') {
                open.push({ el: m, z: stackZ(m), order: i });
            }
        });
        open.sort((a, b) => (a.z - b.z) || (a.order - b.order));
        return open.map(o => o.el);
    }

    function modalLayer(el, modals) {
        const host = el.closest(MODAL_SEL);
        return host ? modals.indexOf(host) : -1;
    }

    function nodeSet(pairs, extraFn) {
        const modals = openModals();
        const nodes = [];
        const records = [];
        pairs.forEach(([el, frame], i) => {
            nodes.push(el);
            records.push(record(el, frame, i, extraFn ? extraFn(el) : null, modals));
        });
        return { nodes, records, viewport: viewport(), modal_open: modals.length > 0, top_modal: modals.length - 1 };
    }

    // -- queries ---------------------------------------------------------

    function queryCss(args) {
        let level = startEntries(args.within);
        while (level.length) {
            const found = [];
            const next = [];
            for (const entry of level) {
                let matches;
                try {
                    matches = Array.from(entry.root.querySelectorAll(args.selector));
                } catch (e) {
                    return { nodes: [], records: [], viewport: viewport(), error: 'Invalid selector: ' + args.selector };
                }
                if (args.contains) {
                    matches = matches.filter(el => (el.textContent || '').includes(args.contains));
                }
                for (const el of matches) found.push([el, entry.frame]);
                next.push(...nestedRoots(entry));
            }
            if (found.length) return nodeSet(found);
            level = next;
        }
        return nodeSet([]);
    }

    function queryAria(args) {
        const needle = (args.label || '').trim().toLowerCase();
        const fields = args.fields || ['aria-label', 'aria-placeholder', 'placeholder', 'name', 'data-testid', 'title', 'alt'];
        const pairs = [];
        if (!needle) return nodeSet(pairs);
        eachRoot(args.within, (entry) => {
            for (const el of entry.root.querySelectorAll('*')) {
                let hit = false;
                for (const f of fields) {
                    const v = el.getAttribute(f);
                    if (v && v.toLowerCase().includes(needle)) { hit = true; break; }
                }
                if (!hit && (el.getAttribute('role') || '').toLowerCase() === needle) hit = true;
                if (!hit && el.matches(ACTIONABLE_SEL) && textOf(el).toLowerCase() === needle) hit = true;
                if (hit) pairs.push([el, entry.frame]);
            }
        });
        return nodeSet(pairs);
    }

    function queryText(args) {
        const needle = (args.text || '').trim().toLowerCase();
        const pairs = [];
        const seen = new Set();
        if (!needle) return nodeSet(pairs);
        eachRoot(args.within, (entry) => {
            const doc = entry.root.ownerDocument || entry.root;
            const walker = doc.createTreeWalker(entry.root, NodeFilter.SHOW_TEXT);
            while (walker.nextNode()) {
                const node = walker.currentNode;
                if (!(node.textContent || '').toLowerCase().includes(needle)) continue;
                const parent = node.parentElement;
                if (!parent || ['SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE'].includes(parent.tagName)) continue;
                const target = parent.closest(ACTIONABLE_SEL) || parent;
                if (seen.has(target)) continue;
                seen.add(target);
                pairs.push([target, entry.frame]);
            }
        });
        return nodeSet(pairs, (el) => ({
            exact: textOf(el).toLowerCase() === needle,
            actionable: el.matches(ACTIONABLE_SEL),
        }));
    }

    function queryXPath(args) {
        try {
            const res = document.evaluate(args.expression, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null);
            const node = res.singleNodeValue;
            if (node && node.nodeType === 1) return nodeSet([[node, topFrame()]]);
        } catch (e) {}
        return nodeSet([]);
    }

    function queryMarker(args) {
        const sel = '[' + MARKER + '="' + Number(args.marker) + '"][' + GEN + '="' + Number(args.generation) + '"]';
        const pairs = [];
        eachRoot(null, (entry) => {
            for (const el of entry.root.querySelectorAll(sel)) pairs.push([el, entry.frame]);
        });
        return nodeSet(pairs.slice(0, 1));
    }

    function closest(args) {
        const el = args.target;
        const hit = (args.selector && el.closest(args.selector)) || el;
        return nodeSet([[hit, frameOf(hit)]]);
    }

    // -- snapshot --------------------------------------------------------

    function snapshotCollect(args) {
        const pairs = [];
        const seen = new Set();
        eachRoot(null, (entry) => {
            for (const el of entry.root.querySelectorAll(INTERACTIVE_SEL)) {
                if (seen.has(el)) continue;
                seen.add(el);
                pairs.push([el, entry.frame]);
            }
        });
        const set = nodeSet(pairs, (el) => ({
            labelledby_text: idrefText(el, 'aria-labelledby'),
            describedby_text: idrefText(el, 'aria-describedby'),
            icon_label: iconLabel(el),
            label_for_text: labelForText(el),
        }));
        set.url = window.location.href;
        set.title = document.title || '';
        return set;
    }

    function snapshotMark(args) {
        eachRoot(null, (entry) => {
            for (const el of entry.root.querySelectorAll('[' + MARKER + ']')) {
                el.removeAttribute(MARKER);
                el.removeAttribute(GEN);
            }
        });
        let written = 0;
        for (const [index, marker] of args.picks) {
            const el = args.set.nodes[index];
            if (!el) continue;
            el.setAttribute(MARKER, String(marker));
            el.setAttribute(GEN, String(args.generation));
            written += 1;
        }
        return { written };
    }

    // -- pointer ---------------------------------------------------------

    function ensurePointer() {
        let el = document.getElementById('__wr-pointer');
        if (el) return el;
        el = document.createElement('div');
        el.id = '__wr-pointer';
        el.setAttribute('aria-hidden', 'true');
        el.innerHTML = '<svg width="28" height="28" viewBox="0 0 32 32" fill="none" xmlns="http://www.w3.org/2000/svg">'
            + '<path d="M6 4L14 26L17.5 16.5L27 13L6 4Z" fill="rgba(124,58,237,0.9)" stroke="white" stroke-width="1.5"/></svg>';
        el.style.cssText = 'position:fixed;left:0;top:0;z-index:2147483647;pointer-events:none;'
            + 'filter:drop-shadow(0 3px 8px rgba(124,58,237,0.45));transition:transform 0.12s ease;';
        (document.body || document.documentElement).appendChild(el);
        return el;
    }

    function deepElementFromPoint(x, y) {
        let doc = document, ox = 0, oy = 0;
        let el = doc.elementFromPoint(x, y);
        for (let guard = 0; el && guard < 16; guard++) {
            if (el.shadowRoot && el.shadowRoot.elementFromPoint) {
                const inner = el.shadowRoot.elementFromPoint(x - ox, y - oy);
                if (inner && inner !== el) { el = inner; continue; }
            }
            if (el.tagName === 'IFRAME') {
                const sub = sameOriginDocument(el);
                if (sub) {
                    const r = el.getBoundingClientRect();
                    ox += r.left + (el.clientLeft || 0);
                    oy += r.top + (el.clientTop || 0);
                    doc = sub;
                    const inner = doc.elementFromPoint(x - ox, y - oy);
                    if (inner) { el = inner; continue; }
                }
            }
            break;
        }
        return { el, ox, oy };
    }

    let hovered = null;

    function pointer(args) {
        const overlay = ensurePointer();
        overlay.style.left = args.x + 'px';
        overlay.style.top = args.y + 'px';
        const hit = deepElementFromPoint(args.x, args.y);
        const el = hit.el;
        if (!el) return { hovered: null };
        const win = (el.ownerDocument && el.ownerDocument.defaultView) || window;
        const opts = {
            bubbles: true, cancelable: true, composed: true, view: win,
            clientX: args.x - hit.ox, clientY: args.y - hit.oy, screenX: args.x, screenY: args.y,
            pointerId: 1, isPrimary: true, pointerType: 'mouse',
        };
        if (hovered !== el) {
            if (hovered) {
                try { hovered.removeAttribute(HOVER); } catch (e) {}
                try { hovered.dispatchEvent(new win.MouseEvent('mouseout', opts)); } catch (e) {}
            }
            hovered = el;
            try { el.setAttribute(HOVER, ''); } catch (e) {}
            try { el.dispatchEvent(new (win.PointerEvent || win.MouseEvent)('pointerover', opts)); } catch (e) {}
            try { el.dispatchEvent(new win.MouseEvent('mouseover', opts)); } catch (e) {}
            const actionable = !!el.closest(ACTIONABLE_SEL) || win.getComputedStyle(el).cursor === 'pointer';
            overlay.style.transform = actionable ? 'scale(0.9)' : 'scale(1)';
        }
        try { el.dispatchEvent(new (win.PointerEvent || win.MouseEvent)('pointermove', opts)); } catch (e) {}
        try { el.dispatchEvent(new win.MouseEvent('mousemove', opts)); } catch (e) {}
        return { hovered: el.tagName.toLowerCase() };
    }

    function ripple(x, y) {
        const r = document.createElement('div');
        r.setAttribute('aria-hidden', 'true');
        r.style.cssText = 'position:fixed;z-index:2147483646;pointer-events:none;width:36px;height:36px;'
            + 'border-radius:50%;background:rgba(139,92,246,0.3);transform:translate(-50%,-50%);'
            + 'transition:transform 0.6s ease-out, opacity 0.6s ease-out;';
        r.style.left = x + 'px';
        r.style.top = y + 'px';
        (document.body || document.documentElement).appendChild(r);
        requestAnimationFrame(() => {
            r.style.transform = 'translate(-50%,-50%) scale(2.5)';
            r.style.opacity = '0';
        });
        setTimeout(() => r.remove(), 700);
    }

    // -- actions ---------------------------------------------------------

    function isDisabled(el) {
        return !!el.disabled || el.getAttribute('aria-disabled') === 'true';
    }

    function scrollIntoView(args) {
        const el = args.target;
        el.scrollIntoView({ behavior: 'instant', block: 'center', inline: 'center' });
        return record(el, frameOf(el), 0);
    }

    // Containment that crosses shadow roots and same-origin iframe boundaries.
    function composedContains(el, node) {
        for (let n = node, guard = 0; n && guard < 512; guard++) {
            if (n === el) return true;
            if (n.parentNode) n = n.parentNode;
            else if (n.host) n = n.host;
            else if (n.defaultView && n.defaultView.frameElement) n = n.defaultView.frameElement;
            else n = null;
        }
        return false;
    }

    function click(args) {
        const el = args.target;
        const hit = deepElementFromPoint(args.vx, args.vy).el;
        if (hit && !composedContains(el, hit)) {
            const by = hit.closest(MODAL_SEL) ? 'modal' : hit.tagName.toLowerCase();
            return { events: [], native_click: false, disabled: isDisabled(el), obscured: true, obscured_by: by };
        }
        const win = (el.ownerDocument && el.ownerDocument.defaultView) || window;
        const opts = {
            bubbles: true, cancelable: true, composed: true, view: win,
            clientX: args.x, clientY: args.y, screenX: args.vx, screenY: args.vy,
            button: 0, buttons: 1, detail: 1, pointerId: 1, isPrimary: true, pointerType: 'mouse',
        };
        const events = [];
        const fire = (type, Ctor) => {
            try {
                el.dispatchEvent(new Ctor(type, opts));
                events.push(type);
            } catch (e) {}
        };
        const Pointer = win.PointerEvent || win.MouseEvent;
        fire('pointerdown', Pointer);
        fire('mousedown', win.MouseEvent);
        if (args.focus) {
            try { el.focus({ preventScroll: true }); events.push('focus'); } catch (e) {}
        }
        opts.buttons = 0;
        fire('pointerup', Pointer);
        fire('mouseup', win.MouseEvent);
        fire('click', win.MouseEvent);
        const disabled = isDisabled(el);
        let nativeClick = false;
        if (args.native !== false && !disabled && typeof el.click === 'function') {
            el.click();
            nativeClick = true;
        }
        ripple(args.vx, args.vy);
        return { events, native_click: nativeClick, disabled };
    }

    function isTextControl(el) {
        if (el.tagName === 'TEXTAREA') return true;
        if (el.tagName !== 'INPUT') return false;
        const t = (el.type || 'text').toLowerCase();
        return ['text', 'search', 'email', 'url', 'tel', 'password', 'number', ''].includes(t);
    }

    function editableHost(el) {
        if (el.isContentEditable) return el;
        const inner = el.querySelector('[contenteditable="true"], [contenteditable=""]');
        if (inner && inner.isContentEditable) return inner;
        const outer = el.closest('[contenteditable="true"]');
        return outer && outer.isContentEditable ? outer : null;
    }

    function setNativeValue(el, value) {
        const win = el.ownerDocument.defaultView || window;
        const proto = el.tagName === 'TEXTAREA' ? win.HTMLTextAreaElement.prototype : win.HTMLInputElement.prototype;
        const desc = Object.getOwnPropertyDescriptor(proto, 'value');
        if (desc && desc.set) desc.set.call(el, value);
        else el.value = value;
    }

    function typeChar(args) {
        const ch = args.char;
        const key = ch === '\n' ? 'Enter' : ch;
        let el = args.target;
        if (!isTextControl(el)) el = editableHost(el);
        if (!el) return { mutated: false, events: [] };
        const doc = el.ownerDocument;
        const win = doc.defaultView || window;
        const kopts = { key: key, bubbles: true, cancelable: true, composed: true };
        const events = [];
        const fire = (ev) => {
            try { el.dispatchEvent(ev); events.push(ev.type); } catch (e) {}
        };
        fire(new win.KeyboardEvent('keydown', kopts));
        fire(new win.InputEvent('beforeinput', { inputType: 'insertText', data: ch, bubbles: true, cancelable: true, composed: true }));
        fire(new win.KeyboardEvent('keypress', kopts));

        let mutated = false;
        if (isTextControl(el)) {
            const value = el.value || '';
            let start = value.length, end = value.length;
            try {
                if (typeof el.selectionStart === 'number') { start = el.selectionStart; end = el.selectionEnd; }
            } catch (e) {}
            setNativeValue(el, value.slice(0, start) + ch + value.slice(end));
            try { el.setSelectionRange(start + 1, start + 1); } catch (e) {}
            mutated = true;
        } else {
            if (doc.activeElement !== el) { try { el.focus({ preventScroll: true }); } catch (e) {} }
            const sel = win.getSelection();
            let range = sel && sel.rangeCount ? sel.getRangeAt(0) : null;
            if (!range || !el.contains(range.startContainer)) {
                range = doc.createRange();
                range.selectNodeContents(el);
                range.collapse(false);
            }
            range.deleteContents();
            const node = ch === '\n' ? doc.createElement('br') : doc.createTextNode(ch);
            range.insertNode(node);
            range.setStartAfter(node);
            range.collapse(true);
            if (sel) { sel.removeAllRanges(); sel.addRange(range); }
            mutated = true;
        }
        events.push('mutation');
        fire(new win.InputEvent('input', { inputType: 'insertText', data: ch, bubbles: true, composed: true }));
        fire(new win.KeyboardEvent('keyup', kopts));
        return { mutated, events };
    }

    function clearValue(args) {
        let el = args.target;
        if (isTextControl(el)) {
            setNativeValue(el, '');
        } else {
            el = editableHost(el);
            if (!el) return { cleared: false };
            el.textContent = '';
        }
        const win = el.ownerDocument.defaultView || window;
        el.dispatchEvent(new win.InputEvent('input', { inputType: 'deleteContentBackward', bubbles: true, composed: true }));
        return { cleared: true };
    }

    function commit(args) {
        const el = args.target;
        const win = (el.ownerDocument && el.ownerDocument.defaultView) || window;
        el.dispatchEvent(new win.Event('change', { bubbles: true }));
        if (args.blur !== false) {
            try { el.blur(); } catch (e) {}
        }
        return { committed: true };
    }

    // Whole-string insertion for rich composers that track their own editor state.
    function insertText(args) {
        if (isTextControl(args.target)) {
            const input = args.target;
            try { input.focus({ preventScroll: true }); } catch (e) {}
            setNativeValue(input, args.text);
            const iwin = input.ownerDocument.defaultView || window;
            input.dispatchEvent(new iwin.InputEvent('input', { inputType: 'insertText', data: args.text, bubbles: true, composed: true }));
            return { inserted: true, exec_command: false };
        }
        const target = editableHost(args.target);
        if (!target) return { inserted: false, exec_command: false };
        const doc = target.ownerDocument;
        const win = doc.defaultView || window;
        try { target.focus({ preventScroll: true }); } catch (e) {}
        let inserted = false;
        try {
            const sel = win.getSelection();
            if (sel) {
                sel.removeAllRanges();
                const range = doc.createRange();
                range.selectNodeContents(target);
                sel.addRange(range);
                inserted = !!(doc.execCommand && doc.execCommand('insertText', false, args.text));
            }
        } catch (e) {
            inserted = false;
        }
        if (!inserted) {
            target.textContent = '';
            target.appendChild(doc.createTextNode(args.text));
            target.dispatchEvent(new win.InputEvent('input', { bubbles: true, cancelable: true, data: args.text }));
        }
        return { inserted: true, exec_command: inserted };
    }

    function focus(args) {
        try { args.target.focus({ preventScroll: true }); return { focused: true }; } catch (e) { return { focused: false }; }
    }

    function scroll(args) {
        window.scrollBy({ left: args.dx || 0, top: args.dy || 0, behavior: 'instant' });
        return { x: window.scrollX, y: window.scrollY };
    }

    function textOfQuery(args) {
        let base = document;
        if (args.within) {
            base = args.ancestor ? args.within.closest(args.ancestor) : args.within;
        }
        if (!base) return null;
        const el = args.selector ? base.querySelector(args.selector) : base;
        return el ? squash(el.textContent, 500) : null;
    }

    function hasAttr(args) {
        return !!(args.target && args.target.hasAttribute(args.name));
    }

    function setAttr(args) {
        if (!/^data-wr-[a-z-]+$/.test(args.name)) return false;
        args.target.setAttribute(args.name, String(args.value));
        return true;
    }

    function pageInfo(args) {
        const info = { url: window.location.href, host: window.location.hostname || '', title: document.title || '' };
        if (args.include_text && document.body) {
            const parts = [];
            let total = 0;
            const max = args.max_length || 2000;
            const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_TEXT);
            while (walker.nextNode() && total < max) {
                const parent = walker.currentNode.parentElement;
                if (!parent || ['SCRIPT', 'STYLE', 'NOSCRIPT'].includes(parent.tagName)) continue;
                const cs = window.getComputedStyle(parent);
                if (cs.display === 'none' || cs.visibility === 'hidden') continue;
                const t = walker.currentNode.textContent.trim();
                if (t) { parts.push(t); total += t.length; }
            }
            info.text = parts.join(' ').slice(0, max);
        }
        return info;
    }

    const OPS = {
        css: queryCss,
        aria: queryAria,
        text: queryText,
        xpath: queryXPath,
        marker: queryMarker,
        closest: closest,
        snapshot_collect: snapshotCollect,
        snapshot_mark: snapshotMark,
        pointer: pointer,
        scroll_into_view: scrollIntoView,
        click: click,
        type_char: typeChar,
        clear: clearValue,
        commit: commit,
        insert_text: insertText,
        focus: focus,
        scroll: scroll,
        text_of: textOfQuery,
        has_attr: hasAttr,
        set_attr: setAttr,
        page_info: pageInfo,
    };

    window.__webreach = {
        dispatch(op, args) {
            const fn = OPS[op];
            if (!fn) throw new Error('Unknown webreach op: ' + op);
            return fn(args || {});
        },
    };
    return true;
}
"""

# The single generic evaluator.  Returns a sentinel when the runtime has not
# been installed in the current document yet (fresh navigation).
_DISPATCH_JS = """
(d) => {
    const rt = window.__webreach;
    if (!rt) return { __wr_missing: true };
    return rt.dispatch(d.op, d.args || {});
}
"""

_NODESET_META_JS = """
(r) => r && r.__wr_missing ? null : {
    records: r.records || [],
    viewport: r.viewport || null,
    modal_open: !!r.modal_open,
    top_modal: typeof r.top_modal === "number" ? r.top_modal : -1,
    error: r.error || null,
    url: r.url || null,
    title: r.title || null,
}
"""


def is_detached_error(exc: BaseException) -> bool:
    """True when a Playwright error means the page or its document went away."""
    message = str(exc)
    return any(pattern in message for pattern in _DETACHED_ERRORS)


class NodeSet:
    """A live handle to a list of matched nodes plus their serialized records."""

    def __init__(
        self,
        handle: JSHandle | None,
        records: list[ElementRecord],
        viewport: Viewport,
        *,
        modal_open: bool = False,
        top_modal: int = -1,
        error: str | None = None,
        url: str = "",
        title: str = "",
    ) -> None:
        self._handle = handle
        self.records = records
        self.viewport = viewport
        self.modal_open = modal_open
        self.top_modal = top_modal
        self.error = error
        self.url = url
        self.title = title

    def __len__(self) -> int:
        return len(self.records)

    @property
    def handle(self) -> JSHandle | None:
        return self._handle

    def node(self, index: int) -> ElementHandle | None:
        """Return an ``ElementHandle`` for the node at *index*."""
        if self._handle is None or not 0 <= index < len(self.records):
            return None
        return self._handle.evaluate_handle("(r, i) => r.nodes[i]", index).as_element()

    def dispose(self) -> None:
        if self._handle is not None:
            try:
                self._handle.dispose()
            except PlaywrightError:
                pass
            self._handle = None


class PageBridge:
    """Sends action descriptors to the in-page runtime of one ``Page``."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def page(self) -> Page:
        return self._page

    def ensure_runtime(self) -> None:
        """Install ``window.__webreach`` in the current document.

        Raises:
            SessionNotReady: The page or its document is gone.
            ScriptInjectionFailure: The page refused to run the runtime.
        """
        self._check_open()
        try:
            installed = self._page.evaluate(RUNTIME_JS)
        except PlaywrightError as exc:
            if is_detached_error(exc):
                raise SessionNotReady(f"Page went away during runtime bootstrap: {exc}") from exc
            raise ScriptInjectionFailure(f"Page refused the interaction runtime: {exc}") from exc
        if not installed:
            raise ScriptInjectionFailure("Interaction runtime did not initialize")
        logger.debug("Interaction runtime installed on %s", self._safe_url())

    def call(self, op: str, **args: Any) -> Any:
        """Run *op* in the page and return its JSON result."""
        descriptor = {"op": op, "args": args}
        for attempt in range(2):
            result = self._evaluate(descriptor)
            if isinstance(result, dict) and result.get("__wr_missing"):
                if attempt:
                    break
                self.ensure_runtime()
                continue
            return result
        raise ScriptInjectionFailure(f"Interaction runtime unavailable for op {op!r}")

    def collect(self, op: str, **args: Any) -> NodeSet:
        """Run a node-collecting *op* and return the resulting ``NodeSet``."""
        descriptor = {"op": op, "args": args}
        for attempt in range(2):
            self._check_open()
            try:
                handle = self._page.evaluate_handle(_DISPATCH_JS, descriptor)
                meta = handle.evaluate(_NODESET_META_JS)
            except PlaywrightError as exc:
                if is_detached_error(exc):
                    raise SessionNotReady(f"Page went away during {op!r}: {exc}") from exc
                raise
            if meta is None:
                handle.dispose()
                if attempt:
                    break
                self.ensure_runtime()
                continue
            records = [ElementRecord.from_dict(r) for r in meta.get("records") or []]
            return NodeSet(
                handle,
                records,
                Viewport.from_dict(meta.get("viewport")),
                modal_open=bool(meta.get("modal_open")),
                top_modal=int(meta.get("top_modal", -1)),
                error=meta.get("error"),
                url=meta.get("url") or "",
                title=meta.get("title") or "",
            )
        raise ScriptInjectionFailure(f"Interaction runtime unavailable for op {op!r}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _evaluate(self, descriptor: dict[str, Any]) -> Any:
        self._check_open()
        try:
            return self._page.evaluate(_DISPATCH_JS, descriptor)
        except PlaywrightError as exc:
            if is_detached_error(exc):
                raise SessionNotReady(f"Page went away during {descriptor['op']!r}: {exc}") from exc
            raise

    def _check_open(self) -> None:
        if self._page.is_closed():
            raise SessionNotReady("Page has been closed")

    def _safe_url(self) -> str:
        try:
            return self._page.url
        except PlaywrightError:
            return "<unknown>"

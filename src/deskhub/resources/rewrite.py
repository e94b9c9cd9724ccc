"""HTML rewriting applied to served project pages."""

from __future__ import annotations

import json
import re
from typing import Sequence

from .media import MediaType

HEAD_CLOSE = "</head>"
HOME_NAV_MARKER = "<!-- deskhub:home-nav -->"
PATH_FIXER_MARKER = "[PathFixer]"

DEFAULT_HOME_TARGETS = (
    "app://localhost/",
    "app://localhost/index.html",
    "http://localhost:1420/",
    "http://localhost:1420/index.html",
)

_HOME_NAV_TEMPLATE = """<!-- deskhub:home-nav -->
<style>
#deskhub-home-container {
  position: fixed !important;
  inset: 0 !important;
  z-index: 2147483647 !important;
  pointer-events: none !important;
  font-family: system-ui, -apple-system, sans-serif !important;
}
#deskhub-home-btn {
  position: absolute !important;
  top: 16px !important;
  left: 16px !important;
  padding: 12px 18px !important;
  border-radius: 25px !important;
  border: 2px solid rgba(255,255,255,0.3) !important;
  background: linear-gradient(135deg, #667eea 0%, #764ba2 100%) !important;
  color: #fff !important;
  font-weight: 700 !important;
  font-size: 15px !important;
  cursor: pointer !important;
  pointer-events: auto !important;
  opacity: 0.95 !important;
  user-select: none !important;
}
#deskhub-home-btn:hover { opacity: 1 !important; }
#deskhub-home-hint {
  position: absolute !important;
  top: 16px !important;
  right: 16px !important;
  background: rgba(0,0,0,0.7) !important;
  color: #fff !important;
  padding: 8px 12px !important;
  border-radius: 6px !important;
  font-size: 12px !important;
  opacity: 0.8 !important;
}
</style>
<script>
(function(){
  var homeTargets = __HOME_TARGETS__;

  function goHome() {
    try {
      if (window.history && window.history.length > 1) {
        window.history.back();
        return;
      }
    } catch (e) {}
    for (var i = 0; i < homeTargets.length; i++) {
      try {
        window.location.href = homeTargets[i];
        return;
      } catch (e) {}
    }
  }

  function mount() {
    var old = document.getElementById('deskhub-home-container');
    if (old) old.remove();
    var container = document.createElement('div');
    container.id = 'deskhub-home-container';
    var btn = document.createElement('button');
    btn.id = 'deskhub-home-btn';
    btn.textContent = '\\u{1F3E0} 返回首頁';
    btn.addEventListener('click', function(e) {
      e.preventDefault();
      e.stopPropagation();
      goHome();
    }, true);
    var hint = document.createElement('div');
    hint.id = 'deskhub-home-hint';
    hint.textContent = 'Alt+H 返回首頁';
    container.appendChild(btn);
    container.appendChild(hint);
    (document.body || document.documentElement).appendChild(container);
    document.addEventListener('keydown', function(e) {
      if ((e.altKey && e.key.toLowerCase() === 'h') || e.key === 'Escape') {
        e.preventDefault();
        goHome();
      }
    }, true);
  }

  if (document.readyState === 'loading') {
    document.addEventListener('DOMContentLoaded', mount);
  } else {
    mount();
  }
})();
</script>"""

_PATH_FIXER_SCRIPT = """<script>
(function() {
  'use strict';
  function fix(el, attr) {
    var value = el.getAttribute(attr);
    if (value && value.charAt(0) === '/' && value.charAt(1) !== '/') {
      el.setAttribute(attr, value.substring(1));
      console.log('[PathFixer]', value, '->', value.substring(1));
    }
  }
  function fixTree(root) {
    root.querySelectorAll('link[href]').forEach(function(el) { fix(el, 'href'); });
    root.querySelectorAll('script[src], img[src]').forEach(function(el) { fix(el, 'src'); });
  }
  new MutationObserver(function(mutations) {
    mutations.forEach(function(mutation) {
      mutation.addedNodes.forEach(function(node) {
        if (node.nodeType !== Node.ELEMENT_NODE) return;
        if (node.hasAttribute('href')) fix(node, 'href');
        if (node.hasAttribute('src')) fix(node, 'src');
        fixTree(node);
      });
    });
  }).observe(document.documentElement, { childList: true, subtree: true });
  fixTree(document);
})();
</script>"""

_HEAD_OPEN_RE = re.compile(r"<head(\s[^>]*)?>", re.IGNORECASE)
_HTML_OPEN_RE = re.compile(r"<html(\s[^>]*)?>", re.IGNORECASE)


def build_home_nav_fragment(home_targets: Sequence[str] = DEFAULT_HOME_TARGETS) -> str:
    return _HOME_NAV_TEMPLATE.replace("__HOME_TARGETS__", json.dumps(list(home_targets)))


HOME_NAV_FRAGMENT = build_home_nav_fragment()


def rewrite(body: bytes, media_type: MediaType, *, fragment: str = HOME_NAV_FRAGMENT) -> bytes:
    """Insert ``fragment`` before the first ``</head>`` of an HTML body.

    Non-HTML media, bodies that are not valid UTF-8 and documents without a
    closing head tag come back unchanged. Already rewritten input is not
    detected, so each body must pass through here at most once.
    """

    if not media_type.rewrite_eligible:
        return body
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return body
    index = text.find(HEAD_CLOSE)
    if index < 0:
        return body
    return (text[:index] + fragment + "\n" + text[index:]).encode("utf-8")


def inject_path_fixer(html: str, base_href: str = "./") -> str:
    """Add a ``<base>`` tag and the root-path fixer right after ``<head>``."""
    if "<base" in html or PATH_FIXER_MARKER in html:
        return html
    injection = f'<base href="{base_href}">{_PATH_FIXER_SCRIPT}'
    head = _HEAD_OPEN_RE.search(html)
    if head:
        return html[: head.end()] + injection + html[head.end() :]
    root = _HTML_OPEN_RE.search(html)
    if root:
        return html[: root.end()] + f"<head>{injection}</head>" + html[root.end() :]
    return html

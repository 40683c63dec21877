"""Fingerprint masking and browser launch profile.

Provides:

- ``MaskProfile`` / ``build_mask_profile()``: the identity the page should see
  (user agent, platform, vendor, languages, hardware hints, color depth).
- ``FingerprintMasker``: applies ``MASK_JS`` to every frame, once per frame
  load, including nested frames where bot-challenge widgets run.
- ``build_browser_profile()``: Playwright ``launch()`` / ``new_context()``
  arguments consistent with the mask profile.

Usage::

    from webreach.browser.stealth import FingerprintMasker, build_browser_profile, build_mask_profile

    mask = build_mask_profile()
    profile = build_browser_profile(mask)
    browser = pw.chromium.launch(**profile.launch_args)
    context = browser.new_context(**profile.context_args)
    page = context.new_page()
    FingerprintMasker(mask).install(page)
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from playwright.sync_api import Error as PlaywrightError

from webreach.settings import Settings, get_settings

if TYPE_CHECKING:
    from playwright.sync_api import Frame, Page

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Common user-agent strings (Chrome on desktop, recent versions)
# ---------------------------------------------------------------------------

_USER_AGENTS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36",
]

_HARDWARE_CONCURRENCY: list[int] = [4, 8, 8, 12, 16]
_DEVICE_MEMORY: list[int] = [4, 8, 8, 16]

# ---------------------------------------------------------------------------
# Mask script; called as ``(profile) => ...`` in every frame
# ---------------------------------------------------------------------------

MASK_JS: str = """
(p) => {
    if (window.__wrMasked) return false;
    try {
        Object.defineProperty(window, '__wrMasked', { value: true, enumerable: false, configurable: false });
    } catch (e) {
        return false;
    }

    const define = (obj, prop, getter) => {
        try {
            Object.defineProperty(obj, prop, { get: getter, configurable: true });
        } catch (e) {}
    };
    const nav = Object.getPrototypeOf(navigator);

    // Automation flag
    define(nav, 'webdriver', () => undefined);

    // User agent and the fields derived from it
    if (p.user_agent) {
        define(nav, 'userAgent', () => p.user_agent);
        define(nav, 'appVersion', () => p.user_agent.replace(/^Mozilla\\//, ''));
    }
    if (p.platform) define(nav, 'platform', () => p.platform);
    if (p.vendor) define(nav, 'vendor', () => p.vendor);

    // Plugin list: a headless browser reports none
    const fakePlugins = [
        { name: 'PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
        { name: 'Chrome PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
        { name: 'Chromium PDF Viewer', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
    ];
    const pluginArray = Object.create(PluginArray.prototype);
    fakePlugins.forEach((pl, i) => {
        const plugin = Object.create(Plugin.prototype);
        define(plugin, 'name', () => pl.name);
        define(plugin, 'filename', () => pl.filename);
        define(plugin, 'description', () => pl.description);
        define(plugin, 'length', () => 0);
        pluginArray[i] = plugin;
    });
    define(pluginArray, 'length', () => fakePlugins.length);
    pluginArray.item = (i) => pluginArray[i] || null;
    pluginArray.namedItem = (n) => fakePlugins.findIndex(pl => pl.name === n) >= 0
        ? pluginArray[fakePlugins.findIndex(pl => pl.name === n)] : null;
    pluginArray.refresh = () => undefined;
    define(nav, 'plugins', () => pluginArray);

    // Hardware hints
    if (p.hardware_concurrency) define(nav, 'hardwareConcurrency', () => p.hardware_concurrency);
    if (p.device_memory) define(nav, 'deviceMemory', () => p.device_memory);
    if (p.languages && p.languages.length) {
        define(nav, 'languages', () => p.languages.slice());
        define(nav, 'language', () => p.languages[0]);
    }
    if (p.color_depth) {
        define(Object.getPrototypeOf(screen), 'colorDepth', () => p.color_depth);
        define(Object.getPrototypeOf(screen), 'pixelDepth', () => p.color_depth);
    }

    // Runtime object a full Chrome exposes on window
    if (!window.chrome) {
        try { window.chrome = {}; } catch (e) {}
    }
    if (window.chrome) {
        if (!window.chrome.runtime) {
            window.chrome.runtime = {
                OnInstalledReason: { INSTALL: 'install', UPDATE: 'update', CHROME_UPDATE: 'chrome_update' },
                PlatformOs: { MAC: 'mac', WIN: 'win', LINUX: 'linux', ANDROID: 'android', CROS: 'cros' },
                connect: () => ({ onMessage: { addListener() {} }, postMessage() {}, disconnect() {} }),
                sendMessage: () => undefined,
            };
        }
        if (!window.chrome.app) {
            window.chrome.app = {
                isInstalled: false,
                InstallState: { DISABLED: 'disabled', INSTALLED: 'installed', NOT_INSTALLED: 'not_installed' },
                RunningState: { CANNOT_RUN: 'cannot_run', READY_TO_RUN: 'ready_to_run', RUNNING: 'running' },
                getDetails: () => null,
                getIsInstalled: () => false,
            };
        }
        if (!window.chrome.csi) {
            const started = Date.now();
            window.chrome.csi = () => ({ onloadT: started, startE: started, pageT: Date.now() - started, tran: 15 });
        }
        if (!window.chrome.loadTimes) {
            const t = Date.now() / 1000;
            window.chrome.loadTimes = () => ({
                requestTime: t, startLoadTime: t, commitLoadTime: t, finishDocumentLoadTime: t,
                finishLoadTime: t, firstPaintTime: t, firstPaintAfterLoadTime: 0, navigationType: 'Other',
                wasFetchedViaSpdy: true, wasNpnNegotiated: true, npnNegotiatedProtocol: 'h2',
                wasAlternateProtocolAvailable: false, connectionInfo: 'h2',
            });
        }
    }

    // Host runtime leakage (embedded shells expose Node globals)
    for (const name of ['process', 'require', 'module', 'global', 'Buffer', 'exports']) {
        try { delete window[name]; } catch (e) {}
    }

    // Known automation marker globals
    const markers = /^(\\$?cdc_|\\$wdc_|__webdriver|__selenium|__driver_evaluate|__driver_unwrapped|__fxdriver|__nightmare|_phantom|callPhantom|_Selenium_IDE_Recorder|domAutomation)/;
    for (const name of Object.getOwnPropertyNames(window)) {
        if (markers.test(name)) {
            try { delete window[name]; } catch (e) {}
        }
    }
    for (const name of Object.getOwnPropertyNames(document)) {
        if (markers.test(name)) {
            try { delete document[name]; } catch (e) {}
        }
    }
    return true;
}
"""


# ---------------------------------------------------------------------------
# Mask profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MaskProfile:
    """Identity values the masking script reports to the page."""

    user_agent: str
    platform: str
    vendor: str = "Google Inc."
    languages: tuple[str, ...] = ("en-US", "en")
    hardware_concurrency: int = 8
    device_memory: int = 8
    color_depth: int = 24

    def to_js(self) -> dict[str, Any]:
        data = asdict(self)
        data["languages"] = list(self.languages)
        return data


def platform_for(user_agent: str) -> str:
    """``navigator.platform`` value consistent with *user_agent*."""
    if "Windows" in user_agent:
        return "Win32"
    if "Macintosh" in user_agent or "Mac OS X" in user_agent:
        return "MacIntel"
    return "Linux x86_64"


def build_mask_profile(settings: Settings | None = None, rng: random.Random | None = None) -> MaskProfile:
    """Build a ``MaskProfile`` from stealth settings.

    Explicit settings always win.  With ``stealth.randomize`` the remaining
    values are drawn from plausible desktop Chrome combinations; otherwise
    the configured defaults are used as-is.
    """
    cfg = (settings or get_settings()).stealth
    rng = rng or random

    user_agent = cfg.user_agent or (rng.choice(_USER_AGENTS) if cfg.randomize else _USER_AGENTS[0])
    hardware = rng.choice(_HARDWARE_CONCURRENCY) if cfg.randomize else cfg.hardware_concurrency
    memory = rng.choice(_DEVICE_MEMORY) if cfg.randomize else cfg.device_memory

    return MaskProfile(
        user_agent=user_agent,
        platform=cfg.platform or platform_for(user_agent),
        vendor=cfg.vendor,
        languages=tuple(cfg.languages) or ("en-US", "en"),
        hardware_concurrency=hardware,
        device_memory=memory,
        color_depth=cfg.color_depth,
    )


class FingerprintMasker:
    """Applies ``MASK_JS`` to every frame of a page.

    Two layers, both idempotent through the in-page ``__wrMasked`` guard:

    - an init script, run before page scripts in every new document;
    - a ``framenavigated`` handler that re-applies the mask per frame, for
      frames whose init script was skipped.
    """

    def __init__(self, profile: MaskProfile) -> None:
        self.profile = profile
        self.applied = 0
        self.skipped = 0
        self._pages: set[int] = set()

    def init_script(self) -> str:
        return f"({MASK_JS.strip()})({json.dumps(self.profile.to_js())});"

    def install(self, page: Page) -> None:
        """Register the init script and the per-frame handler on *page*.

        Call this **before** the first navigation.
        """
        if id(page) in self._pages:
            return
        page.add_init_script(script=self.init_script())
        page.on("framenavigated", self.apply_to_frame)
        self._pages.add(id(page))
        logger.debug("Fingerprint masking installed (user agent %s)", self.profile.user_agent)

    def apply_to_frame(self, frame: Frame) -> bool:
        """Mask one frame; returns ``True`` if the mask was newly applied."""
        try:
            result = bool(frame.evaluate(MASK_JS, self.profile.to_js()))
        except PlaywrightError as exc:
            self.skipped += 1
            logger.warning("Fingerprint masking skipped for frame %s: %s", _frame_url(frame), exc)
            return False
        if result:
            self.applied += 1
        return result


def _frame_url(frame: Frame) -> str:
    try:
        return frame.url
    except PlaywrightError:
        return "<detached>"


# ---------------------------------------------------------------------------
# Browser profile
# ---------------------------------------------------------------------------


@dataclass
class BrowserProfile:
    """All Playwright launch + context arguments for a single session.

    Generated by ``build_browser_profile()``.
    """

    # Arguments for pw.chromium.launch()
    launch_args: dict[str, Any] = field(default_factory=dict)

    # Arguments for browser.new_context()
    context_args: dict[str, Any] = field(default_factory=dict)

    # Metadata for logging
    user_agent: str = ""
    viewport: dict[str, int] = field(default_factory=dict)
    locale: str = ""


def build_browser_profile(mask: MaskProfile | None = None, settings: Settings | None = None) -> BrowserProfile:
    """Build a ``BrowserProfile`` consistent with *mask*.

    Args:
        mask: The session's mask profile; its user agent and languages are
            reused so network-level and script-level identity agree.
        settings: Settings override.

    Returns:
        A ``BrowserProfile`` ready for Playwright.
    """
    settings = settings or get_settings()
    browser = settings.browser
    profile = BrowserProfile()

    # --- Launch args ---
    profile.launch_args["headless"] = browser.headless
    profile.launch_args["args"] = ["--disable-blink-features=AutomationControlled"]
    if browser.channel:
        profile.launch_args["channel"] = browser.channel

    # --- Context args ---
    ctx = profile.context_args
    viewport = {"width": browser.viewport_width, "height": browser.viewport_height}
    ctx["viewport"] = viewport
    profile.viewport = viewport

    locale = mask.languages[0] if mask and mask.languages else browser.locale
    ctx["locale"] = locale
    profile.locale = locale

    if mask and mask.user_agent:
        ctx["user_agent"] = mask.user_agent
        profile.user_agent = mask.user_agent

    return profile

"""Browser interaction modules (Playwright).

Selector resolution (``resolver``, ``visibility``), human-like input
(``simulator``, ``motion``, ``keystrokes``) and page snapshots
(``snapshot``) all run through one in-page evaluator (``runtime``).

``stealth`` masks automation fingerprints in every frame, ``navigation``
wraps ``page.goto`` with fallback and abort recovery, and ``capture`` takes
downscaled screenshots.
"""

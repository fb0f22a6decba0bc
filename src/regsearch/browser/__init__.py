"""Browser automation modules (Playwright).

Session lifecycle lives in ``session``; page loading with captured-content
recovery in ``navigation``.  Anti-detection is handled by ``stealth``
(identity, fingerprint overrides) and ``interception`` (request
classification, initial response capture).  ``quiescence`` tracks
outstanding requests as a soft readiness signal.
"""

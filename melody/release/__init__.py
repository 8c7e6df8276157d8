"""Release domain: versions, manifests, changelog and the release flows.

Submodules are imported directly (``melody.release.flows``,
``melody.release.semver``); ``melody.flow`` depends on ``melody.release.errors``
and must not see the flows at import time.
"""

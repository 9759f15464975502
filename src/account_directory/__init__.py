"""Account Directory: a gated leaderboard service.

A paginated, filterable account directory served over HTTP, guarded by a
multi-step authentication flow (credentials, optional second factor,
optional email verification).

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
``api/routes/health.py`` and ``api/server.py`` import ``__version__`` from
here.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("account-directory")
except PackageNotFoundError:
    __version__ = "0.1.0"

"""arq worker settings module.

Import path for arq CLI: arq finquest.workers.settings.WorkerSettings
"""

from __future__ import annotations

from finquest.workers.revocation_sweeper import RevocationSweeperSettings as WorkerSettings

__all__ = ["WorkerSettings"]

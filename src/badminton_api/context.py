"""
Application context.

Everything the request handlers share (settings, storage, engine, tracker,
intake) is built once per application and reached through
``request.app.state.context``. ``startup`` and ``shutdown`` are driven by the
FastAPI lifespan.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from badminton_domain.ports import IAnalysisEngine
from .config import Settings
from .engines import build_engine
from .intake import UploadIntake
from .storage import StorageManager
from .tasks import AnalysisTracker


logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    storage: StorageManager
    engine: IAnalysisEngine
    tracker: AnalysisTracker
    intake: UploadIntake

    @classmethod
    def build(cls, settings: Settings, engine: Optional[IAnalysisEngine] = None) -> "AppContext":
        storage = StorageManager(settings.data_dir, settings.upload_dir)
        engine = engine or build_engine(settings)
        tracker = AnalysisTracker(
            storage,
            engine,
            timeout_s=settings.analysis_timeout_s,
            worker_count=settings.worker_count,
            max_concurrent=settings.max_concurrent_analyses,
        )
        intake = UploadIntake(storage, tracker, settings.max_upload_bytes)
        return cls(settings=settings, storage=storage, engine=engine, tracker=tracker, intake=intake)

    async def startup(self):
        logger.info("Storage: %s (uploads in %s)", self.storage.data_dir, self.storage.upload_dir)
        self.tracker.start()
        self.tracker.recover()

    async def shutdown(self):
        await self.tracker.stop()
        await self.engine.close()


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the application context."""
    return request.app.state.context

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from phasetrack.api.rest import router as rest_router
from phasetrack.api.ws import router as ws_router
from phasetrack.models.config import LoggingConfig
from phasetrack.services.runtime import build_runtime

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def configure_logging(cfg: LoggingConfig) -> None:
    logging.basicConfig(level=cfg.level, format=cfg.format)
    logging.getLogger("phasetrack").setLevel(cfg.level)


def create_app(config_path: Optional[Path] = None) -> FastAPI:
    runtime = build_runtime(Path(config_path) if config_path else DEFAULT_CONFIG_PATH)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        runtime.session.stop()
        if runtime.osc_sink is not None:
            runtime.osc_sink.close()

    app = FastAPI(title="Gait Phase Tracker", version="0.1.0", lifespan=lifespan)
    configure_logging(runtime.config_store.config.logging)
    app.state.runtime = runtime

    app.include_router(rest_router)
    app.include_router(ws_router)

    return app


if __name__ == "__main__":
    import uvicorn

    application = create_app()
    server_cfg = application.state.runtime.config_store.config.server
    uvicorn.run(application, host=server_cfg.host, port=int(server_cfg.port))

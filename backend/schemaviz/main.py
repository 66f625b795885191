import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schemaviz.api import routes
from schemaviz.config import settings
from schemaviz.providers.sample import list_samples

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup: first activation (re-subscribes after a previous shutdown) ---
    controller = routes.controller
    samples = [s["name"] for s in list_samples()]
    logger.info("可用示例 Schema: %s", samples)
    await controller.activate()
    logger.info(
        "ER 图初始化完成: schema=%s state=%s tables=%d",
        controller.schema, controller.state.value, controller.model.table_count,
    )

    yield

    # --- Shutdown: stop receiving signals and close the metadata client ---
    controller.close()
    aclose = getattr(routes.provider, "aclose", None)
    if aclose is not None:
        await aclose()


app = FastAPI(
    title="Schema 可视化 (ER 图)",
    description="Schema relationship graph service - ER 图构建与布局",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes.router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}

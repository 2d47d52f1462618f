""" Main Server Script"""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware import Middleware
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from sticker_grid.api.api import api
from sticker_grid.models.app_config import get_config
from sticker_grid.services.segment_store import store
from sticker_grid.utils.version import version


# Check and display important api settings
def check_config() -> str:
    documentation_url = None
    if get_config().enable_documentation:
        documentation_url = "/documentation"
        print("Documentation endpoint: ENABLED")
    else:
        print("Documentation endpoint: DISABLED")

    if get_config().grid_rows < 1 or get_config().grid_cols < 1:
        raise ValueError("Please set GRID_ROWS and GRID_COLS > 0 via '.env' file or environment variable!")
    print(f"Sheets are sliced into {get_config().grid_rows}x{get_config().grid_cols} segments")

    if any(size < 1 or size > get_config().max_target_size for size in get_config().resolution_presets):
        raise ValueError("RESOLUTION_PRESETS have to be between 1 and MAX_TARGET_SIZE!")

    if get_config().enable_label_enrichment:
        if not get_config().ai_backend_url:
            raise ValueError("Please set AI_BACKEND_URL via '.env' file or environment variable!")
        print("AI label enrichment: ENABLED")
    else:
        print("AI label enrichment: DISABLED")
    if get_config().ai_backend_url:
        print(f"AI backend: {get_config().ai_backend_url}")
    else:
        print("AI_BACKEND_URL is not set. Upscaling, generation and regeneration will fail.")
    return documentation_url


docs_url = check_config()

# setup CORS middleware
middleware = [
    Middleware(
        CORSMiddleware,
        allow_origins=get_config().cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["sheet_id"],
    )
]

# setup api server
app = FastAPI(
    title="Sticker Grid API",
    version=version(),
    middleware=middleware,
    docs_url=docs_url,
    redoc_url=None,
)
app.include_router(router=api)
Instrumentator().instrument(app).expose(app, include_in_schema=False)


@app.on_event("startup")
async def startup():
    print(f"Running sticker-grid service (v{version()})...")


@app.on_event("shutdown")
async def discard_sheets():
    print("Stopping sticker-grid service...")
    store.clear()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8111, workers=1)

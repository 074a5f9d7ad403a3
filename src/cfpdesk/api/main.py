"""
cfpdesk API - FastAPI backend for the CFP decision & communication workflow
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from dotenv import find_dotenv, load_dotenv

from .routes import cfp
from cfpdesk.utils.logging_config import LogFiles, Logger, clear_trace_id, set_trace_id

# Load local .env automatically so DB / mail settings are available in API mode.
load_dotenv(find_dotenv(usecwd=True), override=False)

app = FastAPI(
    title="cfpdesk API",
    description="Submission scoring, decisions and scheduled speaker emails",
    version="0.1.0",
)

# CORS for the admin UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _trace_requests(request: Request, call_next):
    trace_id = set_trace_id(request.headers.get("x-trace-id") or None)
    try:
        response = await call_next(request)
    finally:
        clear_trace_id()
    if response.status_code >= 500:
        Logger.error(
            "Request failed",
            file=LogFiles.API,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
        )
    response.headers["x-trace-id"] = trace_id
    return response


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": "0.1.0"}


# Include routers
app.include_router(cfp.router, prefix="/api", tags=["CFP Decisions"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

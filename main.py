"""Run the FastAPI app for the LLM relay."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from llm_relay.log_config import configure_logging
from routers import llm_router

configure_logging()

app = FastAPI(title="LLM Relay", version="0.1.0")
app.include_router(llm_router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

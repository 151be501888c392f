import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from handlers.agent_handler import router as agent_router
from handlers.auth_handler import router as auth_router
from handlers.health_handler import router as health_router
from handlers.project_handler import router as project_router
from utils.log_config import attach_file_handler, configure_logging, resolve_log_path

configure_logging()

DIRECTOR_LOG_FILE = os.getenv("DIRECTOR_LOG_FILE", "backend/log/director.log")
DIRECTOR_LOG_LEVEL = os.getenv("DIRECTOR_LOG_LEVEL", "INFO")
director_log_path = resolve_log_path(DIRECTOR_LOG_FILE, ROOT_DIR)
if director_log_path:
    attach_file_handler("agent.director", director_log_path, level_name=DIRECTOR_LOG_LEVEL)
    attach_file_handler("handlers.agent_handler", director_log_path, level_name=DIRECTOR_LOG_LEVEL)
    attach_file_handler("operators.generation_operator", director_log_path, level_name=DIRECTOR_LOG_LEVEL)

app = FastAPI(title="Director Backend")


app.include_router(health_router)
app.include_router(auth_router)
app.include_router(project_router)
app.include_router(agent_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:4173",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)

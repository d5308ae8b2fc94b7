import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from src.agents.factory import create_agent_manager
from src.api.agents import router as agents_api_router
from src.api.errors import agent_error_handler, validation_error_handler
from src.api.supervisor import router as supervisor_api_router
from src.core.config import config
from src.core.errors import AgentSystemError
from src.tasks.scheduler.health_monitor import HealthMonitor

# --- Application Setup ---

logging.basicConfig(
    level=getattr(logging, config.logging.level.upper(), logging.INFO),
    format=config.logging.format,
    filename=config.logging.file_path,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build one agent manager per process and run the supervisor health monitor alongside it."""
    logging.info(f"FinClean application starting up ({config.environment})...")
    config.validate()

    manager = create_agent_manager(config)
    health_monitor = HealthMonitor(manager.supervisor)
    app.state.agent_manager = manager
    app.state.health_monitor = health_monitor

    await health_monitor.start()
    logging.info(f"Agents registered: {', '.join(manager.list_agents())}")

    yield

    logging.info("FinClean application shutting down...")
    await health_monitor.stop()
    await manager.shutdown()
    logging.info("Health monitor and agent queues stopped.")


app = FastAPI(
    title="FinClean",
    description="Agent pipeline for cleaning and labeling financial data.",
    version="0.1.0",
    debug=config.debug,
    lifespan=lifespan,
)

# --- CORS Configuration ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors.origins,
    allow_credentials=config.cors.allow_credentials,
    allow_methods=config.cors.methods,
    allow_headers=config.cors.headers,
)

# --- Error Handlers ---

app.add_exception_handler(AgentSystemError, agent_error_handler)
app.add_exception_handler(ValidationError, validation_error_handler)

# --- Include Routers ---

app.include_router(agents_api_router, prefix="/api/v1", tags=["Agents API"])
app.include_router(supervisor_api_router, prefix="/api/v1/supervisor", tags=["Supervisor API"])

# --- Root Endpoint ---


@app.get("/", tags=["Health Check"])
async def read_root():
    """A simple health check endpoint to confirm the service is running."""
    return {"status": "ok", "message": "FinClean agents are running.", "environment": config.environment}


# --- Health Check Endpoints ---


@app.get("/health/agents", tags=["Health Check"])
async def health_agents(request: Request):
    """Queue and status summary of every registered agent."""
    manager = request.app.state.agent_manager
    statuses = manager.get_all_agents_status()
    return {
        "health_monitor": "running" if request.app.state.health_monitor.running else "stopped",
        "agents": {s["id"]: {"status": s["status"], "queue_length": s["queue_length"]} for s in statuses},
        "queued_tasks": sum(s["queue_length"] for s in statuses),
    }

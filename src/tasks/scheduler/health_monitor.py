import asyncio
import logging

from src.agents.supervisor_agent import SupervisorAgent

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Runs the supervisor's health checks on a fixed interval."""

    def __init__(self, supervisor: SupervisorAgent):
        self.supervisor = supervisor
        self.running = False
        self.monitor_task: asyncio.Task | None = None

    @property
    def interval(self) -> float:
        # Read on every tick so configuration updates take effect without a restart.
        return self.supervisor.settings.health_check_interval_seconds

    async def start(self):
        """Start the monitor."""
        if self.running:
            logger.warning("Health monitor is already running")
            return

        self.running = True
        self.monitor_task = asyncio.create_task(self._monitor_loop())
        logger.info(f"Health monitor started - checking every {self.interval} seconds")

    async def stop(self):
        """Stop the monitor."""
        self.running = False
        if self.monitor_task:
            self.monitor_task.cancel()
            try:
                await self.monitor_task
            except asyncio.CancelledError:
                pass
            self.monitor_task = None
        logger.info("Health monitor stopped")

    async def _monitor_loop(self):
        while self.running:
            try:
                await asyncio.sleep(self.interval)
                self.supervisor.perform_health_checks()
            except asyncio.CancelledError:
                logger.info("Health monitor loop cancelled")
                break
            except Exception as e:
                logger.error(f"Health check error: {e}")

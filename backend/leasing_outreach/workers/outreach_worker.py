"""
Outreach Worker
Background worker that polls the task store for due outreach tasks

Run as separate process:
    python -m leasing_outreach.workers.outreach_worker
"""
import asyncio
import json
import logging
import signal
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

import redis.asyncio as redis

from leasing_outreach.core.config import ConfigManager, get_settings
from leasing_outreach.domain.models import TaskStatus
from leasing_outreach.infrastructure.storage.supabase_store import get_supabase_store
from leasing_outreach.workers.outreach_dispatcher import (
    DispatchOutcome,
    OutreachDispatcher,
    build_dispatcher,
)

logger = logging.getLogger(__name__)

# Configure logging for worker
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


class OutreachWorker:
    """
    Background worker for dispatching due agent tasks.

    Responsibilities:
    - Fetch pending tasks whose scheduled_for has passed
    - Hand each one to the dispatcher (which claims it atomically)
    - Publish task outcomes for live dashboards

    Several workers may run at once; the dispatcher's conditional claim keeps
    any task from executing twice.
    """

    # Worker configuration
    POLL_INTERVAL = 30.0  # Seconds between task scans
    MAX_CONSECUTIVE_ERRORS = 10
    BATCH_SIZE = 20  # Max tasks to dispatch per scan
    EVENTS_CHANNEL = "outreach:tasks:events"

    def __init__(
        self,
        dispatcher: Optional[OutreachDispatcher] = None,
        redis_client: Optional[redis.Redis] = None,
        config: Optional[ConfigManager] = None,
    ):
        self.config = config or ConfigManager()
        self.POLL_INTERVAL = float(self.config.get("dispatcher.poll_interval_seconds", self.POLL_INTERVAL))
        self.BATCH_SIZE = int(self.config.get("dispatcher.batch_size", self.BATCH_SIZE))
        self.EVENTS_CHANNEL = self.config.get("dispatcher.events_channel", self.EVENTS_CHANNEL)

        self.dispatcher = dispatcher
        self.running = False
        self._redis = redis_client

        # Stats
        self._tasks_completed = 0
        self._tasks_failed = 0
        self._tasks_cancelled = 0
        self._claims_lost = 0

    async def initialize(self) -> None:
        """Initialize the store, providers and the Redis connection."""
        logger.info("Initializing Outreach Worker...")

        if self.dispatcher is None:
            self.dispatcher = build_dispatcher(get_supabase_store(), self.config)

        if self._redis is None:
            try:
                self._redis = await redis.from_url(get_settings().redis_url, decode_responses=True)
            except Exception as e:
                logger.warning(f"Redis unavailable, task events will not be published: {e}")

        logger.info("Outreach Worker initialized successfully")

    async def run(self) -> None:
        """
        Main worker loop.

        Continuously:
        1. Dispatch the current batch of due tasks
        2. Publish each outcome
        3. Back off on repeated errors
        """
        await self.initialize()

        self.running = True
        consecutive_errors = 0

        logger.info("Outreach Worker started - scanning for due tasks")

        while self.running:
            try:
                processed = await self.process_due_tasks()

                if processed > 0:
                    logger.info(f"Dispatched {processed} tasks")
                consecutive_errors = 0

                await asyncio.sleep(self.POLL_INTERVAL)

            except asyncio.CancelledError:
                logger.info("Worker received cancellation signal")
                break
            except Exception as e:
                consecutive_errors += 1
                logger.error(f"Worker error ({consecutive_errors}): {e}", exc_info=True)

                if consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS:
                    logger.critical("Too many consecutive errors, stopping worker")
                    break

                await asyncio.sleep(min(5 * consecutive_errors, 60))

        await self.shutdown()

    async def process_due_tasks(self) -> int:
        """
        Dispatch one batch of due tasks.

        Returns:
            Number of tasks this worker claimed
        """
        outcomes = await self.dispatcher.run_due(limit=self.BATCH_SIZE)
        claimed = 0
        for outcome in outcomes:
            if not outcome.claimed:
                self._claims_lost += 1
                continue
            claimed += 1
            if outcome.status == TaskStatus.COMPLETED:
                self._tasks_completed += 1
            elif outcome.status == TaskStatus.CANCELLED:
                self._tasks_cancelled += 1
            else:
                self._tasks_failed += 1
            await self._publish_task_event(outcome)
        return claimed

    async def _publish_task_event(self, outcome: DispatchOutcome) -> None:
        """Publish a task outcome for dashboards to pick up."""
        if self._redis is None:
            return
        try:
            event = {
                "event": f"task_{outcome.status.value}",
                "task_id": outcome.task_id,
                "agent_type": outcome.agent_type,
                "reason": outcome.reason,
                "dispatched": outcome.dispatched,
                "next_task_id": outcome.next_task_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

            await self._redis.publish(self.EVENTS_CHANNEL, json.dumps(event))
            logger.debug(f"Published task event for {outcome.task_id}")

        except Exception as e:
            logger.error(f"Failed to publish task event: {e}")

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        logger.info("Shutting down Outreach Worker...")
        self.running = False

        if self._redis:
            await self._redis.close()
            self._redis = None

        logger.info(
            f"Outreach Worker shutdown complete. "
            f"Completed: {self._tasks_completed}, Failed: {self._tasks_failed}, "
            f"Cancelled: {self._tasks_cancelled}"
        )

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return {
            "running": self.running,
            "tasks_completed": self._tasks_completed,
            "tasks_failed": self._tasks_failed,
            "tasks_cancelled": self._tasks_cancelled,
            "claims_lost": self._claims_lost,
        }


async def main():
    """Entry point for running the outreach worker as separate process."""
    worker = OutreachWorker()

    # Handle shutdown signals
    loop = asyncio.get_event_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.running = False

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())

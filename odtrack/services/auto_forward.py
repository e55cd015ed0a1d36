"""
Auto-forward sweeper.

Periodically escalates requests that have sat in `pending` longer than the
admin-configured timeout to `forwarded_to_admin`, so no request stalls
without faculty action. One sweep over all stale records per interval;
each record is escalated on its own and a failure on one never stops the
rest.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from odtrack.core.logging_config import logger
from odtrack.services.system_settings import SystemSettingsProvider
from odtrack.services.workflow import ODWorkflow, stale_cutoff


class AutoForwardSweeper:

    def __init__(
        self,
        workflow: ODWorkflow,
        system_settings: SystemSettingsProvider,
        interval_seconds: int = 60,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.workflow = workflow
        self.system_settings = system_settings
        self.interval = timedelta(seconds=interval_seconds)
        self.clock = clock or workflow.clock

        self.running = False
        self._task: Optional[asyncio.Task] = None

        self.stats = {
            "total_forwarded": 0,
            "last_sweep": None,
        }

    async def start(self):
        """Start the background sweep loop"""
        if self.running:
            logger.warning("[AutoForward] Sweeper already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"[AutoForward] Started - interval: {self.interval}")

    async def stop(self):
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[AutoForward] Stopped")

    async def _sweep_loop(self):
        while self.running:
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"[AutoForward] Error in sweep loop: {e}", exc_info=True)

            await asyncio.sleep(self.interval.total_seconds())

    async def sweep(self, now: Optional[datetime] = None) -> Dict:
        """
        Run one pass.

        Returns:
            Dict with forwarded / skipped / errors lists of OD ids
        """
        results = {"enabled": True, "forwarded": [], "skipped": [], "errors": []}

        if not self.system_settings.is_auto_forward_enabled():
            logger.debug("[AutoForward] Disabled, skipping sweep")
            results["enabled"] = False
            return results

        now = now or self.clock()
        timeout = self.system_settings.get_auto_forward_timeout()
        cutoff = stale_cutoff(now, timeout)

        for record in self.workflow.store.list_stale_pending(cutoff):
            try:
                _, changed = await self.workflow.forward_to_admin(record.id, cutoff)
            except Exception as e:
                logger.error(f"[AutoForward] Failed to forward OD {record.id}: {e}", exc_info=True)
                results["errors"].append({"id": record.id, "error": str(e)})
                continue

            if changed:
                results["forwarded"].append(record.id)
            else:
                results["skipped"].append(record.id)

        self.stats["total_forwarded"] += len(results["forwarded"])
        self.stats["last_sweep"] = datetime.now(timezone.utc).isoformat()
        if results["forwarded"] or results["errors"]:
            logger.info(
                f"[AutoForward] Sweep done - timeout {timeout}m, forwarded {len(results['forwarded'])}, "
                f"skipped {len(results['skipped'])}, errors {len(results['errors'])}"
            )
        return results

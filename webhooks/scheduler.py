"""
Webhook Retry Scheduler
Periodically drains the outbound event queue so deliveries that failed (or that were
published outside a request) still reach the automation platform.
"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
import logging
from datetime import datetime
from typing import Dict

from .config import get_retry_interval
from .dispatcher import dispatcher

logger = logging.getLogger(__name__)

JOB_ID = 'webhook_retry_drain'


class WebhookRetryScheduler:
    """Manages the interval job that drains the event queue"""

    def __init__(self):
        self.scheduler = BackgroundScheduler()
        self.is_running = False

    def drain_queue(self) -> Dict:
        """
        Deliver everything currently queued

        Returns:
            dict with drain statistics
        """
        start_time = datetime.now()
        pending = dispatcher.queue.pending()
        if not pending:
            return {'events': 0, 'deliveries': 0, 'failed': 0}

        logger.info(f"Webhook retry drain started ({pending} pending)")
        try:
            summary = dispatcher.drain_sync(limit=pending)
        except Exception as e:
            logger.error(f"CRITICAL ERROR in webhook drain: {str(e)}", exc_info=True)
            return {'critical_error': str(e)}

        duration = (datetime.now() - start_time).total_seconds()
        summary['duration_seconds'] = duration
        logger.info(
            f"Webhook retry drain completed in {duration:.2f}s: "
            f"{summary['events']} events, {summary['failed']} failed deliveries"
        )
        return summary

    def start(self, seconds: int = None):
        """
        Start the scheduler

        Args:
            seconds: interval between drains, WEBHOOK_RETRY_INTERVAL_SECONDS when None
        """
        if self.is_running:
            logger.warning("Scheduler is already running")
            return

        seconds = seconds or get_retry_interval()
        self.scheduler.add_job(
            self.drain_queue,
            trigger=IntervalTrigger(seconds=seconds),
            id=JOB_ID,
            name=f'Webhook Retry Drain (Every {seconds}s)',
            replace_existing=True,
            max_instances=1  # Prevent overlapping executions
        )

        self.scheduler.start()
        self.is_running = True

        logger.info(f"Webhook Retry Scheduler STARTED (every {seconds}s)")
        logger.info(f"   Next run: {self.scheduler.get_job(JOB_ID).next_run_time}")

    def stop(self):
        """Stop the scheduler"""
        if not self.is_running:
            logger.warning("Scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Webhook Retry Scheduler STOPPED")

    def get_status(self) -> Dict:
        """Get scheduler status, job information and queue depth"""
        if not self.is_running:
            return {
                'running': False,
                'pending_events': dispatcher.queue.pending(),
                'message': 'Scheduler is not running'
            }

        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run_time': job.next_run_time.isoformat() if job.next_run_time else None,
                'trigger': str(job.trigger)
            })

        return {
            'running': True,
            'jobs': jobs,
            'pending_events': dispatcher.queue.pending(),
        }


# Global scheduler instance
webhook_retry_scheduler = WebhookRetryScheduler()

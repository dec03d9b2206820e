import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tradejournal.config import tradovate_settings

logger = logging.getLogger(__name__)

class SchedulerService:
    def __init__(self, auto_sync_minutes: int = tradovate_settings.auto_sync_minutes):
        self.scheduler = AsyncIOScheduler()
        self.is_running = False
        self.auto_sync_minutes = auto_sync_minutes
        self._setup_jobs()
    
    def _setup_jobs(self):
        """Configure all scheduled jobs"""
        from tradejournal.jobs.broker_jobs import sync_all_broker_accounts

        if self.auto_sync_minutes <= 0:
            logger.info("Broker auto-sync disabled")
            return

        self.scheduler.add_job(
            sync_all_broker_accounts,
            IntervalTrigger(minutes=self.auto_sync_minutes),
            id="sync_broker_accounts",
            max_instances=1,
            coalesce=True,
        )
    
    def start(self):
        """Start the scheduler"""
        if not self.is_running:
            self.scheduler.start()
            self.is_running = True
            logger.info("✅ Scheduler started successfully")
        else:
            logger.warning("Scheduler is already running")
    
    def stop(self):
        """Stop the scheduler"""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("✅ Scheduler stopped successfully")
        else:
            logger.warning("Scheduler is not running")
    
    def get_jobs(self):
        return self.scheduler.get_jobs()
    
    def get_job_info(self):
        """Get formatted job information"""
        job_info = []
        for job in self.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            job_info.append({
                "id": job.id,
                "name": job.name or job.func.__name__,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger)
            })
        return job_info


scheduler_service = SchedulerService()

#!/usr/bin/env python3
"""Background scheduler for periodic Somnia protocol scans

Runs one scan immediately at start, then every SCAN_INTERVAL_MINUTES.
A manual trigger queues a one-off scan on the same scheduler.
"""

import logging
from datetime import datetime
from threading import Lock
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from config import config
from services.protocol_scanner import ProtocolScanner

logger = logging.getLogger("scheduler")


class ScanScheduler:
    def __init__(self, scanner: ProtocolScanner, interval_minutes: int = None):
        self.scanner = scanner
        self.interval_minutes = interval_minutes or config.SCAN_INTERVAL_MINUTES

        self.scan_lock = Lock()
        self.scheduler = BackgroundScheduler()
        self.last_run: Optional[datetime] = None
        self.last_summary: Optional[Dict] = None

    @property
    def running(self) -> bool:
        return self.scheduler.running

    # -----------------------------
    # SAFE SCAN (LOCKED)
    # -----------------------------
    def run_scan(self) -> Optional[Dict]:
        if not self.scan_lock.acquire(blocking=False):
            logger.info("⏭️ Scan already running, skipping")
            return None

        try:
            summary = self.scanner.scan_and_update()
            self.last_run = datetime.utcnow()
            self.last_summary = summary
            return summary
        finally:
            self.scan_lock.release()

    # -----------------------------
    # START (WITH IMMEDIATE RUN)
    # -----------------------------
    def start(self):
        logger.info(f"🚀 Starting automated protocol scanning every {self.interval_minutes} minutes")

        self.scheduler.add_job(
            self.run_scan,
            "interval",
            minutes=self.interval_minutes,
            id="protocol_scan",
            next_run_time=datetime.now(),
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info("✅ Scheduler started")

    def trigger_now(self) -> bool:
        """Queue a one-off scan; False if the scheduler is not running"""
        if not self.running:
            logger.warning("⚠️ Scheduler not running, manual scan ignored")
            return False

        logger.info("📡 Manual scan requested")
        self.scheduler.add_job(self.run_scan, id="manual_scan", replace_existing=True)
        return True

    def stop(self):
        if self.running:
            self.scheduler.shutdown(wait=False)
        logger.info("🛑 Scheduler stopped")

# app/scheduler.py
"""Periodic saved-search and price-drop checks."""
from apscheduler.schedulers.background import BackgroundScheduler
from .db import SessionLocal
from .services import check_all_saved_searches, detect_price_drops
from .utils import logger, env_int

SAVED_SEARCH_INTERVAL_MINUTES = env_int("SAVED_SEARCH_INTERVAL_MINUTES", 60)

scheduler = BackgroundScheduler()


def run_saved_search_check():
    db = SessionLocal()
    try:
        notified = check_all_saved_searches(db)
        logger.info("Saved search check finished, %d searches had new matches", notified)
    except Exception:
        logger.exception("Saved search check failed")
        raise
    finally:
        db.close()


def run_price_drop_check():
    db = SessionLocal()
    try:
        drops = detect_price_drops(db)
        logger.info("Price drop check finished, %d drops found", len(drops))
    except Exception:
        logger.exception("Price drop check failed")
        raise
    finally:
        db.close()


def start_scheduler():
    if scheduler.running:
        return scheduler
    scheduler.add_job(run_saved_search_check, "interval", minutes=SAVED_SEARCH_INTERVAL_MINUTES,
                      id="saved_searches", replace_existing=True)
    scheduler.add_job(run_price_drop_check, "interval", hours=24,
                      id="price_drops", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler

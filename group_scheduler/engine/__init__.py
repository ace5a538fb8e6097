from group_scheduler.engine.api import app, run_engine

__all__ = ["app", "run_engine"]

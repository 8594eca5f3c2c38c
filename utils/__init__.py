"""
Utilities module for the Regulatory Catalyst Dashboard.
"""
from .logger import logger, init_logging, setup_logging
from .utcnow import utcnow, to_naive_utc

__all__ = ["logger", "init_logging", "setup_logging", "utcnow", "to_naive_utc"]

"""
Session logging for flow runs and interview capture
"""
from .session_logger import SessionLogger, get_logger, set_logger, clear_logger

__all__ = ['SessionLogger', 'get_logger', 'set_logger', 'clear_logger']

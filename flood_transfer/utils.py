"""
Utility Functions for Cross-City Flood Transfer Modelling
==========================================================

Contains helper functions for:
- Logging setup
- Timer decorators
- Array statistics
- File operations
"""

import sys
import time
import logging
import functools
from pathlib import Path
from typing import Optional, Union
from datetime import datetime

import numpy as np


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Setup logging configuration.
    
    Parameters
    ----------
    log_file : Path, optional
        Path to log file. If None, logs to console only.
    level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format_string : str, optional
        Custom format string for log messages
        
    Returns
    -------
    logging.Logger
        Configured logger instance
    """
    if format_string is None:
        format_string = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    
    logger = logging.getLogger("FloodTransfer")
    logger.setLevel(getattr(logging, level.upper()))
    
    # Clear existing handlers
    logger.handlers.clear()
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)
    
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(console_formatter)
        logger.addHandler(file_handler)
    
    return logger


# Get default logger
logger = setup_logging()


# =============================================================================
# TIMER DECORATOR
# =============================================================================

def timer(func):
    """
    Decorator to measure and log function execution time.
    
    Usage
    -----
    @timer
    def fit_model():
        pass
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        logger.info(f"Starting: {func.__name__}")
        
        result = func(*args, **kwargs)
        
        logger.info(f"Completed: {func.__name__} in {format_duration(time.time() - start_time)}")
        return result
    
    return wrapper


# =============================================================================
# FILE UTILITIES
# =============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure directory exists, create if necessary.
    
    Parameters
    ----------
    path : str or Path
        Directory path
        
    Returns
    -------
    Path
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# =============================================================================
# DATA UTILITIES
# =============================================================================

def calculate_statistics(array: np.ndarray) -> dict:
    """
    Calculate basic statistics for a 1-D array, ignoring NaN values.
    
    Parameters
    ----------
    array : np.ndarray
        Input array
        
    Returns
    -------
    dict
        Dictionary with count, min, max, mean, median, std, q1, q3
    """
    data = np.asarray(array, dtype=float).ravel()
    data = data[~np.isnan(data)]
    
    if len(data) == 0:
        return {"count": 0}
    
    return {
        "count": len(data),
        "min": float(np.min(data)),
        "max": float(np.max(data)),
        "mean": float(np.mean(data)),
        "median": float(np.median(data)),
        "std": float(np.std(data)),
        "q1": float(np.percentile(data, 25)),
        "q3": float(np.percentile(data, 75))
    }


# =============================================================================
# TIMESTAMP UTILITIES
# =============================================================================

def get_timestamp() -> str:
    """Get current timestamp string."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.2f} seconds"
    elif seconds < 3600:
        return f"{seconds/60:.2f} minutes"
    else:
        return f"{seconds/3600:.2f} hours"

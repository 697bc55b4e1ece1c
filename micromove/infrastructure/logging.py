import logging
import json
import sys
import os
from datetime import datetime
from typing import Optional

from micromove.config import LOG_FILE

class JsonFormatter(logging.Formatter):
    """Formats logs as JSON lines."""
    def format(self, record):
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
        }
        if hasattr(record, "props"):
            log_obj.update(record.props)
        
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
            
        return json.dumps(log_obj, default=str)

def setup_logging(log_file: Optional[str] = LOG_FILE, level: int = logging.INFO) -> logging.Logger:
    """Configures structured logging to file and pretty print to console."""
    app_logger = logging.getLogger("micromove")
    app_logger.setLevel(level)
    app_logger.propagate = False
    
    # Clear existing handlers
    app_logger.handlers = []
    
    # File Handler (JSONL)
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JsonFormatter())
        app_logger.addHandler(file_handler)
    
    # Console Handler (Human Readable)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s'
    ))
    app_logger.addHandler(console_handler)

    return app_logger

def get_logger(name: str) -> logging.Logger:
    """Child of the 'micromove' logger; configured once by setup_logging()."""
    if name.startswith("micromove"):
        return logging.getLogger(name)
    return logging.getLogger(f"micromove.{name}")

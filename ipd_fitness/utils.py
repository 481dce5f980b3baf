"""
Utility functions for IPD experiments
Environment loading, logging setup, experiment metadata and timing
"""

import os
import json
import time
import logging
from datetime import datetime
from typing import Dict, Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


def load_env_vars(env_file: Optional[str] = None) -> Dict[str, str]:
    """Load a .env file (if any) and return the IPD_* variables now in the environment"""
    load_dotenv(env_file)
    return {key: value for key, value in os.environ.items() if key.startswith("IPD_")}


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None):
    """Log to the console and, optionally, to a file"""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def create_experiment_config(mode: str, agent_names, settings: Dict) -> Dict:
    return {
        'timestamp': datetime.now().isoformat(),
        'mode': mode,
        'agents': list(agent_names),
        'settings': settings,
    }


def save_experiment_metadata(metadata: Dict, filepath: str):
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filepath, 'w') as f:
        json.dump(metadata, f, indent=2, default=str)


class Timer:
    """Context manager measuring wall-clock time"""

    def __init__(self, label: str = "Elapsed"):
        self.label = label
        self.start = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, *exc):
        self.elapsed = time.perf_counter() - self.start
        logger.info("%s: %.2fs", self.label, self.elapsed)
        return False

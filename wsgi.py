"""WSGI entry point for production deployment."""
import sys
import os
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from main import build_components
from web.app import create_app

logger = logging.getLogger("metricwatch.wsgi")

config = load_config(os.environ.get("METRICWATCH_CONFIG"))
setup_logging(config["logging"]["level"], config["logging"].get("file"))

components = build_components(config)
app = create_app(config, components)

logger.info(f"Serving Metric Watch API from database {config['database']['path']}")

"""
Showrunner - generative orchestration core for AI web-series production.
Premise -> story bible -> episodes -> pre-production documents, each produced
by Draft -> Enhancement Engines -> Synthesis.
"""

import logging

# Configure logging for the whole package tree
logger = logging.getLogger("showrunner")
logger.setLevel(logging.DEBUG)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)

__version__ = "0.1.0"

# python
"""treeserve package"""
__version__ = "0.1"

from treeserve.env import load_env

# Load .env values at import time so TREESERVE_* settings come from python-dotenv.
load_env()

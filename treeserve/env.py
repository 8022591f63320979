"""
Loads TREESERVE_* settings from a .env file.
"""
from functools import lru_cache
from pathlib import Path

from dotenv import find_dotenv, load_dotenv


@lru_cache(maxsize=1)
def load_env() -> Path:
    """
    Load the nearest .env (searching up from the working directory, then the
    project root) once per process. Variables already set in the environment
    are left alone. Returns the path that was attempted.
    """
    found = find_dotenv(".env", usecwd=True)
    dotenv_path = Path(found) if found else Path(__file__).resolve().parents[1] / ".env"
    load_dotenv(dotenv_path=dotenv_path, override=False)
    return dotenv_path

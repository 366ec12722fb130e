"""
Configuration for Blockflow
"""
import os
from dotenv import load_dotenv

from ..utils.logger import get_logger

load_dotenv()


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


class Config:
    """Configuration class for Blockflow"""
    
    # Debug mode (set BLOCKFLOW_DEBUG=true to enable)
    DEBUG: bool = os.getenv("BLOCKFLOW_DEBUG", "").lower() in ("true", "1", "yes")
    
    # Execution budgets (milliseconds / visit attempts)
    MAX_EXECUTION_TIME: float = _env_float("BLOCKFLOW_MAX_EXECUTION_TIME", "30000")
    MAX_STEPS: int = int(os.getenv("BLOCKFLOW_MAX_STEPS", "1000"))
    STEP_DELAY: float = _env_float("BLOCKFLOW_STEP_DELAY", "0")
    BLOCK_TIMEOUT: float = _env_float("BLOCKFLOW_BLOCK_TIMEOUT", "5000")
    
    # Hard ceilings for caller-supplied options
    MAX_EXECUTION_TIME_LIMIT: float = 300000
    MAX_STEPS_LIMIT: int = 10000
    STEP_DELAY_LIMIT: float = 5000
    
    # API server configuration
    API_HOST: str = os.getenv("BLOCKFLOW_HOST", "127.0.0.1")
    API_PORT: int = int(os.getenv("BLOCKFLOW_PORT", "7780"))
    
    @classmethod
    def validate(cls) -> bool:
        """Validate configuration"""
        logger = get_logger(__name__)
        ok = True
        if not 0 < cls.MAX_EXECUTION_TIME <= cls.MAX_EXECUTION_TIME_LIMIT:
            logger.error(f"BLOCKFLOW_MAX_EXECUTION_TIME must be in (0, {cls.MAX_EXECUTION_TIME_LIMIT:g}]")
            ok = False
        if not 0 < cls.MAX_STEPS <= cls.MAX_STEPS_LIMIT:
            logger.error(f"BLOCKFLOW_MAX_STEPS must be in (0, {cls.MAX_STEPS_LIMIT}]")
            ok = False
        if not 0 <= cls.STEP_DELAY <= cls.STEP_DELAY_LIMIT:
            logger.error(f"BLOCKFLOW_STEP_DELAY must be in [0, {cls.STEP_DELAY_LIMIT:g}]")
            ok = False
        if not 0 < cls.BLOCK_TIMEOUT <= cls.MAX_EXECUTION_TIME_LIMIT:
            logger.error(f"BLOCKFLOW_BLOCK_TIMEOUT must be in (0, {cls.MAX_EXECUTION_TIME_LIMIT:g}]")
            ok = False
        return ok

import os
import logging
from dotenv import load_dotenv

load_dotenv()

# Official Somnia testnet factory (Uniswap V2 style pairs)
SOMNIA_FACTORY = '0x4be0ddfebca9a5a4a617dee4dece99e7c862dceb'


def _split_csv(value: str):
    return [v.strip() for v in value.split(',') if v.strip()]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Somnia testnet
    SOMNIA_RPC_URL = os.getenv('SOMNIA_RPC_URL', 'https://dream-rpc.somnia.network/')
    RPC_TIMEOUT_SECONDS = int(os.getenv('RPC_TIMEOUT_SECONDS', '15'))
    FACTORY_ADDRESSES = _split_csv(os.getenv('FACTORY_ADDRESSES', SOMNIA_FACTORY))
    DISCOVERY_LIMIT = int(os.getenv('DISCOVERY_LIMIT', '5'))

    # Gemini
    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY', '')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-2.5-flash')
    LLM_TIMEOUT_SECONDS = int(os.getenv('LLM_TIMEOUT_SECONDS', '30'))

    # Database
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///./sentinel.db')

    # Scheduler
    SCAN_INTERVAL_MINUTES = int(os.getenv('SCAN_INTERVAL_MINUTES', '15'))
    SCANNER_ENABLED = _env_bool('SCANNER_ENABLED', 'true')

    # API
    CORS_ORIGINS = _split_csv(os.getenv('CORS_ORIGINS', '*'))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def validate(cls):
        """Validate critical configuration"""
        errors = []
        if not cls.GEMINI_API_KEY:
            errors.append('GEMINI_API_KEY not set (heuristic scoring only)')
        if not cls.FACTORY_ADDRESSES:
            errors.append('FACTORY_ADDRESSES is empty, discovery will find nothing')
        if cls.SCAN_INTERVAL_MINUTES < 1:
            errors.append('SCAN_INTERVAL_MINUTES must be at least 1')
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")
        return True


def configure_logging(level: str = None):
    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


config = Config()

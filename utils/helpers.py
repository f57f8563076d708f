"""
FaceScan-Auth - Utility Functions
Configuration, environment and logging setup
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
import os
from datetime import datetime
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FACESCAN_CONFIG"


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Sections missing from the file are filled in from the defaults.

    Args:
        config_path: Path to config.yaml; falls back to $FACESCAN_CONFIG, then ./config.yaml

    Returns:
        Configuration dictionary
    """
    config_path = config_path or get_env_variable(CONFIG_ENV_VAR, "config.yaml")

    try:
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            raise ValueError(f"Top level of {config_path} must be a mapping")

        config = get_default_config()
        for section, values in loaded.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        # Return default config
        return get_default_config()


def get_default_config() -> Dict[str, Any]:
    """Get default configuration"""
    return {
        'app': {
            'name': 'FaceScan-Auth',
            'version': '1.0.0',
            'log_level': 'INFO',
            'log_file': 'faceauth.log'
        },
        'liveness': {
            'ear_threshold': 0.21,
            'required_blinks': 3,
            'required_head_moves': 2,
            'head_move_threshold': 25.0,
            'ear_history_size': 32
        },
        'capture': {
            'required_samples': 3,
            'max_capture_seconds': 30,
            'min_face_size': 100,
            'center_tolerance': 0.2,
            'size_tolerance': 0.3
        },
        'matching': {
            'base_threshold': 0.65,
            'floor_factor': 0.9,
            'encoding_size': 128
        },
        'camera': {
            'index': 0,
            'frame_width': 1280,
            'frame_height': 720
        },
        'detector': {
            'model': 'hog',
            'upsample': 1,
            'num_jitters': 1
        },
        'database': {
            'path': 'faceauth_db.sqlite'
        },
        'tts': {
            'enabled': True,
            'model_path': 'en_US-lessac-medium.onnx',
            'rate': 150,
            'volume': 0.9
        }
    }


def load_environment():
    """Load environment variables from .env file"""
    env_path = Path('.env')

    if env_path.exists():
        load_dotenv(env_path)
        logger.info("Environment variables loaded from .env")
    else:
        logger.debug(".env file not found. Using default settings.")


def get_env_variable(key: str, default: Any = None) -> Any:
    """Get environment variable with fallback"""
    return os.getenv(key, default)


def setup_logging(log_level: str = "INFO", log_file: str = "faceauth.log"):
    """
    Setup logging configuration

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Log file path
    """
    # Create logs directory if needed
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Configure logging
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logger.info(f"Logging initialized: level={log_level}, file={log_file}")


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format"""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"


def format_timestamp(value: datetime) -> str:
    """Format a datetime to readable date/time"""
    return value.strftime("%Y-%m-%d %H:%M:%S")

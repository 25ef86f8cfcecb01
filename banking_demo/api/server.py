"""
Server entry point
"""

from typing import Optional

import uvicorn

from ..config import get_config
from ..logging_config import setup_logging


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    setup_logging(level=config.log_level, log_file=config.log_file)
    uvicorn.run(
        "banking_demo.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )

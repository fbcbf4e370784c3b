#!/usr/bin/env python3
"""
alerthub backend server
"""

import uvicorn

from alerthub.config import get_settings
from alerthub.core.logging import setup_logging

# own logging config; keep uvicorn from installing its default one
setup_logging()

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "alerthub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_debug,
        log_level=settings.log_level.lower(),
        log_config=None,
    )

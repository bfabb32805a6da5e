"""Test package for the chat sync client."""

import logging

logging.getLogger("asyncio").setLevel(logging.ERROR)

#!/usr/bin/env python3
"""
radiodeck HTTP Server Runner
"""

from dotenv import load_dotenv

from radiodeck.crosscutting.config import get_settings
from radiodeck.crosscutting.logging import setup_logging
from radiodeck.interfaces.bootstrap import build_coordinator
from radiodeck.interfaces.http import HTTPServer


def main():
    """Run the HTTP server."""
    load_dotenv()
    setup_logging('INFO', structured=False)
    coordinator = build_coordinator(get_settings())
    server = HTTPServer(
        coordinator,
        host='localhost',
        port=3000,
        debug=True
    )
    coordinator.start()
    try:
        server.run()
    finally:
        coordinator.close()


if __name__ == '__main__':
    main()

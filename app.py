#!/usr/bin/env python3
"""
Receipt Spooler - HTTP intake for printing remote images on a network receipt printer
"""

import os

from receipt_spooler import create_app

app = create_app()

if __name__ == "__main__":
    host = os.environ.get("RECEIPTSPOOLER_HOST", "0.0.0.0")
    port = int(os.environ.get("RECEIPTSPOOLER_PORT", "5000"))
    app.logger.info(f"Starting Receipt Spooler on http://{host}:{port}")
    app.logger.info("Press Ctrl+C to stop the server")
    app.run(host=host, port=port, debug=False)

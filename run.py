#!/usr/bin/env python3
"""
HouseHelp backend - development entry point
"""
import os

from server import create_app

app = create_app()

if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    app.run(host="0.0.0.0", port=port, debug=app.config.get("DEBUG", False))

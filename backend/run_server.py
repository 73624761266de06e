#!/usr/bin/env python3
"""
Launch script for SmoothDrive Backend.

Usage:
    python run_server.py [--sensors KIND] [--port PORT] [--host HOST]

Examples:
    python run_server.py                      # Device sensors pushed over HTTP
    python run_server.py --sensors simulated  # Generated drive, no device needed
    python run_server.py --port 5000          # Run on port 5000
"""

import argparse
import os
import sys
from pathlib import Path

# Add smoothdrive to path
sys.path.insert(0, str(Path(__file__).parent))


def main():
    parser = argparse.ArgumentParser(description="SmoothDrive Backend Server")
    parser.add_argument(
        "--sensors", "-s",
        choices=["device", "simulated"],
        default=os.getenv("SMOOTHDRIVE_SENSOR_KIND", "device"),
        help="Sensor variant (default: device)"
    )
    parser.add_argument(
        "--scoring",
        choices=["gravity_deviation", "linear_tenths", "percent_clamped", "percent_absolute"],
        default=None,
        help="Scoring policy (default: gravity_deviation)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8000,
        help="Port to run server on (default: 8000)"
    )
    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Run in debug mode"
    )

    args = parser.parse_args()

    # Configuration is read from the environment by the app
    os.environ["SMOOTHDRIVE_SENSOR_KIND"] = args.sensors
    if args.scoring:
        os.environ["SMOOTHDRIVE_SCORING"] = args.scoring

    print(f"SmoothDrive Backend")
    print(f"=" * 40)
    print(f"Sensors: {args.sensors}")
    print(f"Server: http://{args.host}:{args.port}")
    print(f"=" * 40)

    print("\nAPI Endpoints:")
    print("  GET  /                  - Health check")
    print("  GET  /health            - Detailed health")
    print("  GET  /session           - Session status")
    print("  POST /session/start     - Start a session")
    print("  POST /session/stop      - Stop the session")
    print("  POST /session/reset     - Reset statistics")
    print("  GET  /session/snapshot  - Live telemetry snapshot")
    print("  GET  /session/record    - Score record")
    print("  POST /session/samples   - Push accelerometer reading (device)")
    print("  POST /session/fixes     - Push position fix (device)")
    print("\nStarting server...")

    import uvicorn

    uvicorn.run(
        "smoothdrive.main:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()

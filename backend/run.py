"""
FuelPOS Station Backend — Uvicorn Launcher

Usage:
    python run.py
    python run.py --port 8080 --log-level debug

Always runs a single worker: QR payment sessions and their pollers are
held in process memory, so a second worker would never see them.
"""
import argparse
import uvicorn

from fuelpos.config import get_settings


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description=settings.APP_NAME)
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL.lower(),
                        choices=["critical", "error", "warning", "info", "debug"],
                        help="Uvicorn log level (default: LOG_LEVEL from settings)")

    args = parser.parse_args()

    gateway = settings.BANK_STATUS_URL or "simulated (POST /api/payments/qr/simulate/{ref})"
    print(f"""
    ========================================================
      {settings.APP_NAME} v{settings.APP_VERSION}
      API:          http://{args.host}:{args.port}
      Docs:         http://localhost:{args.port}/docs
      Bank gateway: {gateway}
      QR timeout:   {settings.QR_TIMEOUT_SECONDS:g}s
    ========================================================
    """)

    uvicorn.run(
        "fuelpos.main:app",
        host=args.host,
        port=args.port,
        workers=1,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()

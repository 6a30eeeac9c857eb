"""Web server entry point for the passkey demo"""

import uvicorn

# Load environment variables from .env file BEFORE importing anything else
from dotenv import load_dotenv
load_dotenv()

from passkey_auth.utils.config import load_settings
from passkey_auth.utils.logger import setup_logger
from web.main import create_app


def main() -> None:
    settings = load_settings()
    setup_logger(
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        file_path=settings.logging.file_path,
        max_bytes=settings.logging.max_bytes,
        backup_count=settings.logging.backup_count,
    )

    app = create_app(settings)

    print(f"Passkey Demo Server running on http://localhost:{settings.app.port}")
    missing = settings.verify.missing()
    if missing:
        print("\nBefore registering a passkey, configure the verification service:")
        print("1. Copy .env.example to .env")
        print("2. Set your Twilio credentials")
        print(f"3. Set {', '.join(missing)}")
    print()

    try:
        uvicorn.run(app, host=settings.app.host, port=settings.app.port)
    except KeyboardInterrupt:
        print("\nShutting down...")


if __name__ == "__main__":
    main()

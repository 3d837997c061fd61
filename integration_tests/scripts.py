import os
import subprocess
import sys

from dotenv import load_dotenv

REQUIRED_ENV_VARS = [
    "TELEGRAM_TEST_API_ID",
    "TELEGRAM_TEST_API_HASH",
    "TELEGRAM_TEST_PHONE",
    "TELEGRAM_TEST_ACCOUNT_ID",
    "TELEGRAM_MAIN_BOT_USERNAME",
    "TELEGRAM_TEST_TICKET_IMAGE",
]


def _ensure_env() -> None:
    load_dotenv()
    missing = sorted(var for var in REQUIRED_ENV_VARS if not os.environ.get(var))
    if missing:
        raise SystemExit(f"Cannot run the live ticket bot checks. Missing env vars: {', '.join(missing)}")


def main() -> None:
    _ensure_env()
    flows = ["link_flow.py", "ticket_flow.py"]
    failures = []
    for flow in flows:
        cmd = [sys.executable, f"integration_tests/telegram_bot/{flow}"]
        print(f"Running {flow}")
        returncode = subprocess.call(cmd)
        if returncode != 0:
            print(f"[ERROR] {flow} exited with code {returncode}")
            failures.append(flow)

    for flow in flows:
        print(f" - {flow}: {'FAIL' if flow in failures else 'OK'}")
    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()

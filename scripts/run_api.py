"""Start the ERP pricing API with uvicorn (development server)."""
import subprocess
import sys
import os
from pathlib import Path


def build_command(env: dict) -> list[str]:
    command = [
        sys.executable, "-m", "uvicorn",
        "erp_pricing.api.main:app",
        "--host", env.get("ERP_API_HOST", "0.0.0.0"),
        "--port", env.get("ERP_API_PORT", "8000"),
        "--log-level", env.get("ERP_LOG_LEVEL", "info").lower(),
    ]
    if env.get("ERP_API_RELOAD", "1") != "0":
        command.append("--reload")
    return command


def main():
    project_root = Path(__file__).parent.parent
    os.chdir(project_root)

    # Make the src layout importable without an install
    env = os.environ.copy()
    paths = [str(project_root / "src")]
    if env.get("PYTHONPATH"):
        paths.append(env["PYTHONPATH"])
    env["PYTHONPATH"] = os.pathsep.join(paths)

    print("Starting ERP Pricing API (FastAPI)...")
    try:
        subprocess.run(build_command(env), env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()

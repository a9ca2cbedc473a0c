#!/usr/bin/env python3
"""Launcher for the piggybank dashboard and API.

``python run_dashboard.py`` starts the Streamlit dashboard;
``python run_dashboard.py api`` starts the HTTP API instead.
"""

import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.resolve()

if __name__ == "__main__":
    sys.path.insert(0, str(project_root))
    if sys.argv[1:2] == ["api"]:
        from piggybank.api import main

        main()
    else:
        subprocess.run([
            sys.executable, "-m", "streamlit", "run",
            str(project_root / "piggybank" / "dashboard.py"),
        ], cwd=project_root)

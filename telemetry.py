# telemetry.py
import os, sys, logging, warnings

def go_quiet(default_level="WARNING"):
    """
    Silence 3rd-party log spam while keeping:
      - the contractmerge.* loggers at INFO (or CM_LOG_LEVEL)
      - real warnings/errors from everything else
    Call as the FIRST thing in an entry point.
    """
    os.environ.setdefault("PYTHONUTF8", "1")
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    os.environ.setdefault("OPENAI_LOG", "error")

    # --- Ensure stdout uses UTF-8 on Windows ---
    if sys.platform.startswith("win"):
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (AttributeError, OSError):
            pass

    # --- Root logging config ---
    lvl = getattr(logging, default_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=lvl,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,  # override prior handlers from libs
    )

    # --- Silence noisy third-party loggers ---
    noisy = [
        # networking / http
        "urllib3", "urllib3.connectionpool", "httpx", "requests",
        # database
        "sqlalchemy", "sqlalchemy.engine",
        # web servers
        "uvicorn.access",
    ]
    for name in noisy:
        lg = logging.getLogger(name)
        lg.setLevel(logging.ERROR)

    # Convert Python warnings -> logging
    logging.captureWarnings(True)
    warnings.simplefilter("ignore", category=DeprecationWarning)

    # App logger: own handler, level from CM_LOG_LEVEL
    app_level = getattr(logging, os.getenv("CM_LOG_LEVEL", "INFO").upper(), logging.INFO)
    app_logger = logging.getLogger("contractmerge")
    app_logger.setLevel(app_level)
    app_logger.propagate = False
    if not app_logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setLevel(app_level)
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        app_logger.addHandler(h)
    return app_logger

import json
import logging
import os
from typing import Optional

from megaverse.megaverse_client import MegaverseClient
from megaverse.reconciler import Reconciler, ReconciliationPlan
from megaverse.scheduler import ActionScheduler
from megaverse.schemas import ReconcileSettings, ReconciliationReport
from megaverse.utils.config import find_settings_file, load_settings
from megaverse.utils.formatting import format_report, grid_to_text
from megaverse.utils.rate_limiter import RequestRateLimiter
from megaverse.utils.retry import RetryConfig, RetryPolicy

logger = logging.getLogger(__name__)

# ============================================================================
# CLI Arguments
# ============================================================================

def _bool_env(env_var: str, default: str = "false") -> bool:
    """Helper to parse boolean environment variable."""
    return os.getenv(env_var, default).lower() in ("true", "1", "yes")

def _int_env(env_var: str, default: Optional[int] = None) -> Optional[int]:
    """Helper to parse integer environment variable."""
    val = os.getenv(env_var)
    return int(val) if val else default

def _str_env(env_var: str, default: Optional[str] = None) -> Optional[str]:
    """Helper to parse string environment variable."""
    return os.getenv(env_var, default)

def configure_args(parser):
    # Identity and settings
    parser.add_argument(
        "--candidate-id",
        type=str,
        default=_str_env("CANDIDATE_ID"),
        help="Caller identity for the megaverse API. Can be set via CANDIDATE_ID env var."
    )
    parser.add_argument(
        "--settings",
        type=str,
        default=_str_env("MEGAVERSE_SETTINGS"),
        help="Path to a YAML settings file (default: megaverse.yml if present). Can be set via MEGAVERSE_SETTINGS env var."
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=_int_env("CONCURRENCY"),
        help="Number of cells updated in parallel (default: 5). Can be set via CONCURRENCY env var."
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=_int_env("MAX_ATTEMPTS"),
        help="Attempts per API call when rate limited (default: 3). Can be set via MAX_ATTEMPTS env var."
    )

    # Run mode
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and print the plan without changing anything. Can be set via DRY_RUN env var (true/1/yes)."
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Remove every entity instead of building the goal map."
    )

    # Display
    parser.add_argument(
        "--show-grid",
        action="store_true",
        help="Print the observed and desired grids before applying changes."
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the final report as JSON."
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=_str_env("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO). Can be set via LOG_LEVEL env var."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output (DEBUG level for app, WARNING for libraries). Can be set via VERBOSE env var (true/1/yes)."
    )

# ============================================================================
# CLI Configurers
# ============================================================================

def apply_env_vars_to_args(args):
    """
    Apply environment variables to parsed arguments.
    This is needed for boolean flags since argparse's store_true action
    doesn't respect default values from environment variables.
    """
    # Only override if env var is set (allows CLI flags to take precedence)
    if os.getenv("DRY_RUN") and not args.dry_run:
        args.dry_run = _bool_env("DRY_RUN")
    if os.getenv("VERBOSE") and not args.verbose:
        args.verbose = _bool_env("VERBOSE")
    return args

def configure_logging(args):
    if args.verbose:
        # Verbose mode: Show DEBUG for our code, WARNING+ for libraries
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        for lib_logger in ['urllib3', 'requests']:
            logging.getLogger(lib_logger).setLevel(logging.WARNING)

        logging.getLogger('megaverse').setLevel(logging.DEBUG)
        logging.getLogger('__main__').setLevel(logging.DEBUG)

        logger.info("Verbose mode enabled")
    else:
        logging.basicConfig(
            level=getattr(logging, args.log_level.upper()),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

def resolve_settings(args) -> ReconcileSettings:
    """Merge the settings file with CLI/env overrides."""
    settings_file = args.settings or find_settings_file()
    if settings_file:
        logger.debug(f"Loading settings from {settings_file}")
    return load_settings(
        settings_file,
        overrides={
            "concurrency": args.concurrency,
            "max_attempts": args.max_attempts,
        },
    )

def build_reconciler(settings: ReconcileSettings, candidate_id: Optional[str] = None) -> Reconciler:
    """Wire a client, retry policy and scheduler from settings."""
    client = MegaverseClient(
        candidate_id=candidate_id,
        base_url=settings.base_url,
        pool_size=settings.concurrency,
        timeout=settings.timeout,
    )
    policy = RetryPolicy(
        RetryConfig(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay,
            backoff_factor=settings.backoff_factor,
            max_delay=settings.max_delay,
            min_delay=settings.min_delay,
        ),
        limiter=RequestRateLimiter.from_interval(settings.min_interval),
        shared_cooldown=settings.shared_cooldown,
    )
    scheduler = ActionScheduler(client, policy, settings.concurrency)
    return Reconciler(client, policy=policy, scheduler=scheduler)

# ============================================================================
# CLI Handlers
# ============================================================================

def print_grids(plan: ReconciliationPlan):
    logger.info("\nObserved grid:\n" + grid_to_text(plan.observed))
    logger.info("\nDesired grid:\n" + grid_to_text(plan.desired))

def print_report(report: ReconciliationReport, json_output: bool = False):
    if json_output:
        print(json.dumps(report.model_dump(mode="json"), indent=2))
        return
    for line in format_report(report):
        logger.info(line)

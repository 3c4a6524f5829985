import argparse
import random
import time

from perf.runner import constants
from perf.runner.models import PipelineOptions

SPEED_QUOTES = [
    '"Every car has a lot of speed in it. The trick is getting the speed out of it." AJ Foyt',
    '"I am not a speed reader. I am a speed understander." Isaac Asimov',
    '"If everything seems under control, you\'re not going fast enough." Mario Andretti',
    '"It is not always possible to be the best, but it is always possible to improve your '
    'own performance." Jackie Stewart',
    '"Racing is life. Anything before or after is just waiting." Steven McQueen',
    '"Speed provides the one genuinely modern pleasure." Aldous Huxley',
]


def random_quote() -> str:
    return random.choice(SPEED_QUOTES)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perf-runner",
        description="Build, serve and load-test a web application inside containers",
        epilog=random_quote(),
    )
    parser.add_argument("--app-build-cmd", required=True, help="Command that builds the app")
    parser.add_argument("--app-server-cmd", required=True, help="Command that serves the app")
    parser.add_argument(
        "--app-server-hostname",
        default=constants.DEFAULT_HOSTNAME,
        help="Hostname the load test uses to reach the app server",
    )
    parser.add_argument("--git-sha", required=True, help="Branch or commit to build")
    parser.add_argument("--github-org", required=True)
    parser.add_argument("--github-repo", required=True)
    parser.add_argument("--github-token", required=True)
    parser.add_argument(
        "--github-url",
        default=constants.DEFAULT_GITHUB_URL,
        help="Base URL used to link the reported commit",
    )
    parser.add_argument(
        "--mock-server-cmd", help="Command that serves mocked backends (omit to skip)"
    )
    parser.add_argument(
        "--mock-server-hostname",
        default=constants.DEFAULT_HOSTNAME,
        help="Hostname the app server uses to reach the mock server",
    )
    parser.add_argument("--metrics-host", help="Time-series backend host (omit to skip report)")
    parser.add_argument("--prefix", default=constants.DEFAULT_PREFIX, help="Metric name prefix")
    parser.add_argument("--profile", default=constants.DEFAULT_PROFILE, help="Metric profile tag")
    parser.add_argument(
        "--resource-timing", action="store_true", help="Collect resource timing metrics"
    )
    parser.add_argument(
        "--sitespeed-retries",
        type=int,
        default=constants.SITESPEED_RETRIES,
        help="Attempts per URL",
    )
    parser.add_argument(
        "--sitespeed-retry-interval",
        type=float,
        default=constants.SITESPEED_RETRY_INTERVAL,
        help="Seconds between attempts for one URL",
    )
    parser.add_argument(
        "--sitespeed-sample-size",
        type=int,
        default=constants.SITESPEED_SAMPLE_SIZE,
        help="Page loads per URL",
    )
    parser.add_argument("--sitespeed-screenshot", action="store_true", help="Capture screenshots")
    parser.add_argument("--sitespeed-output-dir", help="Host directory for load test results")
    parser.add_argument("--browser-config", help="Host path of the browsertime JSON config")
    parser.add_argument("--plugins-dir", help="Host directory with collector plugins")
    parser.add_argument(
        "--readiness-attempts",
        type=int,
        default=constants.READINESS_ATTEMPTS,
        help="Probe attempts before the app server is considered down",
    )
    parser.add_argument(
        "--readiness-timeout",
        type=float,
        default=constants.READINESS_REQUEST_TIMEOUT,
        help="Per-probe request timeout (seconds)",
    )
    parser.add_argument(
        "--parallel-urls", action="store_true", help="Load test all URLs concurrently"
    )
    parser.add_argument(
        "--timestamp", type=int, help="Run timestamp in ms since epoch (default: now)"
    )
    parser.add_argument("--result-file", help="Write the run outcome as JSON to this path")
    parser.add_argument(
        "--url",
        required=True,
        nargs="+",
        action="extend",
        help="Target URL(s); a value may hold several whitespace-separated URLs",
    )
    return parser


def parse_args(argv=None):
    return build_parser().parse_args(argv)


def split_urls(values) -> tuple[str, ...]:
    urls: list[str] = []
    for value in values or []:
        urls.extend(part for part in value.split() if part)
    return tuple(urls)


def build_options(args, *, builder_container: str | None = None) -> PipelineOptions:
    timestamp = args.timestamp if args.timestamp is not None else int(time.time() * 1000)
    return PipelineOptions(
        app_build_cmd=args.app_build_cmd,
        app_server_cmd=args.app_server_cmd,
        git_sha=args.git_sha,
        github_org=args.github_org,
        github_repo=args.github_repo,
        github_token=args.github_token,
        urls=split_urls(args.url),
        mock_server_cmd=args.mock_server_cmd or None,
        app_server_hostname=args.app_server_hostname,
        mock_server_hostname=args.mock_server_hostname,
        metrics_host=args.metrics_host or None,
        prefix=args.prefix,
        profile=args.profile,
        resource_timing=args.resource_timing,
        sitespeed_retries=args.sitespeed_retries,
        sitespeed_retry_interval=args.sitespeed_retry_interval,
        sitespeed_sample_size=args.sitespeed_sample_size,
        sitespeed_screenshot=args.sitespeed_screenshot,
        sitespeed_output_dir=args.sitespeed_output_dir,
        browser_config=args.browser_config,
        plugins_dir=args.plugins_dir,
        readiness_attempts=args.readiness_attempts,
        readiness_timeout=args.readiness_timeout,
        parallel_urls=args.parallel_urls,
        timestamp=timestamp,
        result_file=args.result_file,
        github_url=args.github_url,
        builder_container=builder_container or None,
    )

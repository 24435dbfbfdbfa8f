import json
import logging
from concurrent.futures import ThreadPoolExecutor

import boto3
import click
import requests
import watchtower
from flask import Flask
from werkzeug.debug import DebuggedApplication
from werkzeug.middleware.proxy_fix import ProxyFix

from faultbox.diag.views import diag
from faultbox.observability import ObservabilityMiddleware, setup_logging
from faultbox.scenario.models import ScenarioKind
from faultbox.scenario.primitives import MemoryLeaseStore, RetainedMemory
from faultbox.scenario.registry import ScenarioRegistry
from faultbox.scenario.target_client import TargetClient
from faultbox.scenario.views import scenario_bp
from faultbox.target.views import target_bp
from faultbox.up.views import up


def create_app(settings_override=None):
    """
    Create a Flask application using the app factory pattern.

    :param settings_override: Override settings
    :return: Flask app
    """
    app = Flask(__name__)

    app.config.from_object("config.settings")

    if settings_override:
        app.config.update(settings_override)

    if app.config.get("STRUCTURED_LOGGING"):
        setup_logging(app, app.config.get("LOG_LEVEL"))

    middleware(app)

    app.register_blueprint(up)
    app.register_blueprint(scenario_bp)
    app.register_blueprint(target_bp)
    app.register_blueprint(diag)

    extensions(app)
    register_cli(app)
    configure_cloudwatch_logging(app)

    return app


def register_cli(app):
    """Register custom Flask CLI commands."""

    @app.cli.group("scenarios")
    @click.option(
        "--base-url",
        default=None,
        help="Instance to control (defaults to SCENARIO_CONTROL_URL).",
    )
    @click.pass_context
    def scenarios_group(ctx, base_url):
        """Start, stop and inspect scenarios on a running instance."""
        base_url = base_url or app.config["SCENARIO_CONTROL_URL"]
        ctx.obj = f"{base_url.rstrip('/')}/api/scenario-toggle"

    @scenarios_group.command("status")
    @click.pass_obj
    def status_command(api):
        """Print the status of every scenario."""
        response = _call("GET", f"{api}/status")
        for item in response.json():
            state = "active" if item["isActive"] else "idle"
            click.echo(
                f"{item['scenario']:<22} {state:<7} "
                f"{item['lastMessage'] or '-'}"
            )

    @scenarios_group.command("start")
    @click.argument("kind", type=click.Choice(_slugs()))
    @click.argument("config_json")
    @click.pass_obj
    def start_command(api, kind, config_json):
        """Start KIND with CONFIG_JSON (camelCase fields)."""
        try:
            payload = json.loads(config_json)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="CONFIG_JSON")

        response = _call("POST", f"{api}/{kind}/start", json=payload)
        click.echo(json.dumps(response.json(), indent=2))

    @scenarios_group.command("stop")
    @click.argument("kind", type=click.Choice(_slugs()))
    @click.pass_obj
    def stop_command(api, kind):
        """Signal KIND to stop."""
        response = _call("POST", f"{api}/{kind}/stop")
        click.echo(json.dumps(response.json(), indent=2))


def _slugs():
    return [kind.slug for kind in ScenarioKind]


def _call(method, url, **kwargs):
    try:
        response = requests.request(method, url, timeout=10, **kwargs)
    except requests.RequestException as e:
        raise click.ClickException(f"Could not reach {url}: {e}")

    if response.status_code >= 400:
        try:
            detail = response.json().get("error", response.text)
        except ValueError:
            detail = response.text
        raise click.ClickException(f"{response.status_code}: {detail}")

    return response


def extensions(app):
    """
    Register 0 or more extensions (mutates the app passed in).

    :param app: Flask application instance
    :return: None
    """
    leases = MemoryLeaseStore()

    target = None
    if app.config.get("SCENARIO_TARGET_URL"):
        target = TargetClient(
            app.config["SCENARIO_TARGET_URL"],
            timeout=app.config.get("SCENARIO_TARGET_TIMEOUT", 30.0),
        )

    app.extensions["memory_leases"] = leases
    app.extensions["retained_memory"] = RetainedMemory()
    app.extensions["query_executor"] = ThreadPoolExecutor(
        max_workers=app.config.get("QUERY_EXECUTOR_WORKERS", 32),
        thread_name_prefix="diag-query",
    )
    app.extensions["scenario_target"] = target
    app.extensions["scenario_registry"] = ScenarioRegistry(
        leases=leases,
        target=target,
        seconds_per_minute=app.config.get("SCENARIO_SECONDS_PER_MINUTE", 60.0),
    )

    ObservabilityMiddleware(app)

    return None


def configure_cloudwatch_logging(app):
    """
    Attach an AWS CloudWatch Logs handler to the Flask app logger
    and the root Python logger so that ERROR-level (and above) logs
    are shipped to CloudWatch automatically.

    Controlled by the CLOUDWATCH_ENABLED env-var / config flag.
    When disabled no AWS calls are made, keeping local dev simple.

    :param app: Flask application instance
    :return: None
    """
    if not app.config.get("CLOUDWATCH_ENABLED"):
        app.logger.debug("CloudWatch logging is disabled")
        return

    region = app.config.get("AWS_REGION", "us-east-1")
    log_group = app.config.get("CLOUDWATCH_LOG_GROUP", "faultbox")
    log_stream = app.config.get("CLOUDWATCH_LOG_STREAM", "error-logs")
    log_level_name = app.config.get("CLOUDWATCH_LOG_LEVEL", "ERROR")
    log_level = getattr(logging, log_level_name.upper(), logging.ERROR)

    boto3_client = boto3.client("logs", region_name=region)

    cw_handler = watchtower.CloudWatchLogHandler(
        log_group_name=log_group,
        log_stream_name=log_stream,
        boto3_client=boto3_client,
        send_interval=10,
        create_log_group=True,
        create_log_stream=True,
    )

    cw_handler.setLevel(log_level)
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s %(threadName)s in %(module)s: %(message)s"
    )
    cw_handler.setFormatter(formatter)

    app.logger.addHandler(cw_handler)

    # Runner threads log through module loggers, not the app logger.
    logging.getLogger().addHandler(cw_handler)

    app.logger.info(
        "CloudWatch logging enabled → group=%s stream=%s level=%s",
        log_group,
        log_stream,
        log_level_name,
    )


def middleware(app):
    """
    Register 0 or more middleware (mutates the app passed in).

    :param app: Flask application instance
    :return: None
    """
    # Enable the Flask interactive debugger in the browser for development.
    if app.debug:
        app.wsgi_app = DebuggedApplication(app.wsgi_app, evalex=True)

    # Set the real IP address into request.remote_addr when behind a proxy.
    app.wsgi_app = ProxyFix(app.wsgi_app)

    return None

"""
redisqueue - Command-line entry point

Thin layer that:
1. Loads connection settings from the environment
2. Configures logging
3. Runs one queue operation and shuts the queue down gracefully
"""

import asyncio
import logging
import logging.config as log_config
from typing import Any, Awaitable, Callable, List

import click

from redisqueue.config import ConfigProvider, EnvConfigProvider
from redisqueue.exceptions import QueueException
from redisqueue.logging_config import get_logging_config
from redisqueue.modules.queue import Queue

logger = logging.getLogger("redisqueue.cli")


def run_queue_action(ctx: click.Context, action: Callable[[Queue], Awaitable[Any]]) -> Any:
    """Build the queue, run ``action`` against it and quit gracefully."""
    provider: ConfigProvider = ctx.obj["config_provider"]
    name = ctx.obj["name"]

    async def runner() -> Any:
        errors: List[Exception] = []
        queue = Queue.from_config(name, provider.get_queue_config())
        queue.on("error", errors.append)
        try:
            result = await action(queue)
        finally:
            await queue.quit()
        if errors:
            raise errors[0]
        return result

    try:
        return asyncio.run(runner())
    except QueueException as e:
        logger.error(f"{e.error_code}: {e.message}")
        ctx.exit(1)


@click.group()
@click.option("--log-level", default="WARNING", show_default=True, help="Log level for redisqueue loggers")
@click.option("--show-commands", is_flag=True, help="Log every Redis command at DEBUG")
@click.argument("name")
@click.pass_context
def cli(ctx: click.Context, log_level: str, show_commands: bool, name: str):
    """Inspect and operate the Redis queue NAME."""
    log_config.dictConfig(get_logging_config(log_level, show_commands=show_commands))
    ctx.ensure_object(dict)
    ctx.obj["name"] = name
    ctx.obj.setdefault("config_provider", EnvConfigProvider())


@cli.command()
@click.argument("payload")
@click.pass_context
def put(ctx: click.Context, payload: str):
    """Append PAYLOAD to the queue."""
    length = run_queue_action(ctx, lambda queue: queue.put(payload))
    click.echo(length)


@cli.command()
@click.pass_context
def pop(ctx: click.Context):
    """Remove and print the head of the queue."""
    item = run_queue_action(ctx, lambda queue: queue.pop())
    if item is not None:
        click.echo(item)


@cli.command(name="list")
@click.pass_context
def list_items(ctx: click.Context):
    """Print every queued item, head first."""
    for item in run_queue_action(ctx, lambda queue: queue.get_all()):
        click.echo(item)


@cli.command()
@click.pass_context
def errors(ctx: click.Context):
    """Print every requeued item."""
    for item in run_queue_action(ctx, lambda queue: queue.get_all_errors()):
        click.echo(item)


@cli.command()
@click.argument("payload")
@click.pass_context
def requeue(ctx: click.Context, payload: str):
    """Append PAYLOAD to the error list."""
    length = run_queue_action(ctx, lambda queue: queue.requeue(payload))
    click.echo(length)


@cli.command()
@click.pass_context
def clear(ctx: click.Context):
    """Delete the queue and its error list."""
    removed = run_queue_action(ctx, lambda queue: queue.clear())
    click.echo(removed)


@cli.command()
@click.confirmation_option(prompt="This deletes every key in the Redis database. Continue?")
@click.pass_context
def flush(ctx: click.Context):
    """Delete every key in the Redis database."""
    run_queue_action(ctx, lambda queue: queue.flush())
    click.echo("OK")


@cli.command()
@click.argument("payload")
@click.pass_context
def publish(ctx: click.Context, payload: str):
    """Broadcast PAYLOAD on the queue channel."""

    async def action(queue: Queue) -> None:
        queue.publish(payload)

    run_queue_action(ctx, action)


@cli.command()
@click.pass_context
def listen(ctx: click.Context):
    """Print channel messages until interrupted."""

    async def action(queue: Queue) -> None:
        queue.on("message", click.echo)
        queue.on("error", lambda err: logger.error(f"Connection error: {err}"))
        queue.on("reconnecting", lambda err: logger.warning(f"Reconnecting: {err}"))
        await queue.connect()
        count = await queue.subscribe()
        logger.info(f"Listening on '{queue.name}' ({count} subscriptions)")
        await asyncio.Event().wait()

    try:
        run_queue_action(ctx, action)
    except KeyboardInterrupt:
        logger.info("Stopped listening")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()

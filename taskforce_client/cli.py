"""Command line entrypoint for the task API client."""

from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx
import rich_click as click

from taskforce_client.cancellation import CancelToken
from taskforce_client.client import TaskForceClient
from taskforce_client.config import ClientOptions
from taskforce_common.errors import OperationCancelled, TaskForceError
from taskforce_common.schemas import TaskStatus, TaskSubmissionOptions

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130

Action = Callable[[TaskForceClient, CancelToken], Optional[TaskStatus]]


def print_status(st: TaskStatus) -> None:
    click.echo(f"Status: {st.status}")
    for w in st.warnings:
        click.echo(f"Warning: {w}")


def print_outcome(st: Optional[TaskStatus]) -> None:
    if st is None:
        return
    if st.result is not None:
        click.echo(f"Result: {st.result}")
    if st.error is not None:
        click.echo(f"Error: {st.error}")


def poll_options(fn):
    fn = click.option(
        "--max-attempts",
        type=click.IntRange(min=0),
        default=0,
        help="Polls before giving up (0 means 60).",
    )(fn)
    fn = click.option(
        "--interval",
        type=click.FloatRange(min=0),
        default=0,
        help="Seconds between polls (0 means 1).",
    )(fn)
    return fn


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
@click.pass_context
def taskforce(ctx: click.Context, verbose: bool) -> None:
    """Submit and follow tasks on the task API."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    client = TaskForceClient(ClientOptions.from_env(), http_client=ctx.obj.get("http_client"))
    ctx.obj["client"] = ctx.with_resource(client)


@taskforce.command("run")
@click.argument("prompt")
@click.option("--stream", "use_stream", is_flag=True, help="Follow the event stream instead of polling.")
@click.option("--model", "model_id", default=None, help="Model id to run the prompt with.")
@click.option("--mock", is_flag=True, default=None, help="Ask the server for a mock result.")
@click.option("--silent", is_flag=True, default=None, help="Suppress server-side notifications.")
@poll_options
@click.pass_context
def run_cmd(
    ctx: click.Context,
    prompt: str,
    use_stream: bool,
    model_id: Optional[str],
    mock: Optional[bool],
    silent: Optional[bool],
    interval: float,
    max_attempts: int,
) -> None:
    """Submit a prompt and follow it to the end."""

    def action(client: TaskForceClient, token: CancelToken) -> Optional[TaskStatus]:
        opts = TaskSubmissionOptions(model_id=model_id, mock=mock or None, silent=silent or None)
        task_id = client.submit_task(prompt, opts, token=token)
        click.echo(f"Submitted: {task_id}")
        if use_stream:
            return follow_stream(client, task_id, token)
        return client.wait_for_completion(task_id, interval, max_attempts, print_status, token=token)

    _execute(ctx, action)


@taskforce.command("status")
@click.argument("task_id")
@click.pass_context
def status_cmd(ctx: click.Context, task_id: str) -> None:
    """Print the current status of a task."""

    def action(client: TaskForceClient, token: CancelToken) -> Optional[TaskStatus]:
        st = client.get_task_status(task_id, token=token)
        print_status(st)
        return st

    _execute(ctx, action, require_completed=False)


@taskforce.command("wait")
@click.argument("task_id")
@poll_options
@click.pass_context
def wait_cmd(ctx: click.Context, task_id: str, interval: float, max_attempts: int) -> None:
    """Poll a task until it finishes."""
    _execute(
        ctx,
        lambda client, token: client.wait_for_completion(task_id, interval, max_attempts, print_status, token=token),
    )


@taskforce.command("stream")
@click.argument("task_id")
@click.pass_context
def stream_cmd(ctx: click.Context, task_id: str) -> None:
    """Print the event stream of a task."""
    _execute(ctx, lambda client, token: follow_stream(client, task_id, token))


def follow_stream(client: TaskForceClient, task_id: str, token: CancelToken) -> Optional[TaskStatus]:
    last = None
    with client.stream_task_status(task_id, token=token) as stream:
        for st in stream:
            print_status(st)
            last = st
            if st.is_terminal:
                break
    return last


def _execute(ctx: click.Context, action: Action, require_completed: bool = True) -> None:
    client: TaskForceClient = ctx.obj["client"]
    token = CancelToken()
    try:
        last = action(client, token)
    except KeyboardInterrupt:
        token.cancel()
        click.echo("Interrupted", err=True)
        ctx.exit(EXIT_INTERRUPTED)
    except OperationCancelled:
        ctx.exit(EXIT_INTERRUPTED)
    except TaskForceError as e:
        print_outcome(e.status)
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_FAILED)
    except httpx.HTTPError as e:
        click.echo(f"Network error: {e}", err=True)
        ctx.exit(EXIT_FAILED)

    print_outcome(last)
    if require_completed and (last is None or not last.is_completed):
        ctx.exit(EXIT_FAILED)


def main() -> None:
    taskforce(obj={})


if __name__ == "__main__":
    main()

"""toolwire run -- execute tasks with a model driving the provider's tools."""

from __future__ import annotations

import click

from toolwire.agent import DEFAULT_MAX_ROUNDS, AgentConfig, AgentLoop
from toolwire.cli.formatting import format_answer, format_error, format_transcript
from toolwire.exceptions import AgentTaskError
from toolwire.llm.client import DEFAULT_MODEL


def _build_provider(model: str):
    """Create the completion provider used by ``run``."""
    from toolwire.llm import OpenAIClient, OpenAICompletionProvider

    return OpenAICompletionProvider(OpenAIClient(default_model=model))


@click.command()
@click.argument("tasks", nargs=-1, required=True)
@click.option("--model", default=DEFAULT_MODEL, envvar="TOOLWIRE_MODEL", show_default=True, help="Model name.")
@click.option("--max-rounds", default=DEFAULT_MAX_ROUNDS, type=int, show_default=True, help="Round limit per task.")
@click.option("--system-prompt", default=None, help="Override the default system prompt.")
@click.option("--transcript", is_flag=True, help="Print the conversation after the last task.")
@click.pass_context
def run(
    ctx: click.Context,
    tasks: tuple[str, ...],
    model: str,
    max_rounds: int,
    system_prompt: str | None,
    transcript: bool,
) -> None:
    """Run TASKS in order, sharing one conversation between them."""
    from toolwire.cli import _client_session

    with _client_session(ctx) as (client, console):
        config = AgentConfig(max_rounds=max_rounds)
        if system_prompt is not None:
            config.system_prompt = system_prompt
        provider = _build_provider(model)
        try:
            agent = AgentLoop(provider, [client], config=config)
            agent.discover_tools()

            for task in tasks:
                try:
                    answer = agent.execute_task(task)
                except AgentTaskError as e:
                    format_error(f"{type(e).__name__}: {e}", console)
                    format_transcript(e.messages, console)
                    raise SystemExit(1) from None
                format_answer(task, answer, console)

            if transcript:
                format_transcript(agent.memory.snapshot(), console)
        finally:
            provider.close()

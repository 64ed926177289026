"""Click CLI: loads config, builds agents and providers, runs debates and prints results."""

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from dialectic.clarifications import NOT_APPLICABLE, apply_answers, collect_clarifications, has_questions
from dialectic.console import AgentLogger, make_agent_logger
from dialectic.errors import EXIT_CONFIG_ERROR, EXIT_GENERAL_ERROR, ConfigError, DebateStateError, DialecticError
from dialectic.judge import JudgeAgent
from dialectic.models import (
    ORCHESTRATOR_CLASSIC,
    ORCHESTRATOR_STATE_MACHINE,
    STATUS_SUSPENDED,
    TERMINAL_STATUSES,
    AgentClarifications,
    AgentConfig,
    DebateConfig,
    DebateResult,
    ExecutionResult,
    Round,
)
from dialectic.orchestrator import OrchestratorHooks
from dialectic.orchestrator_factory import create_orchestrator
from dialectic.output import print_debate, print_round_summary, print_synthesis, save_report
from dialectic.prompts import ROLE_PROMPTS
from dialectic.providers.factory import ProviderPool
from dialectic.role_agent import RoleBasedAgent
from dialectic.state import StateManager, new_debate_id
from dialectic.state_machine.orchestrator import StateMachineOrchestrator
from dialectic.tools.registry import build_default_registry

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load_app_config(config_path: str | None) -> AppConfig:
    load_dotenv()
    try:
        return load_config(Path(config_path)) if config_path else load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(EXIT_CONFIG_ERROR)


def _fail(exc: Exception) -> None:
    code = exc.exit_code if isinstance(exc, DialecticError) else EXIT_GENERAL_ERROR
    console.print(f"[bold red]Error:[/bold red] {exc}")
    sys.exit(code)


def _select_agent_configs(config: AppConfig, roles_arg: str | None) -> list[AgentConfig]:
    """Enabled agents from config, narrowed to --agents roles when given.

    A requested role with no configured agent gets one modelled on the
    first configured agent (or the judge).
    """
    enabled = [a for a in config.agents if a.enabled]
    if not roles_arg:
        return enabled

    roles = [r.strip() for r in roles_arg.split(",") if r.strip()]
    unknown = [r for r in roles if r not in ROLE_PROMPTS]
    if unknown:
        raise click.BadParameter(
            f"Unknown role(s): {', '.join(unknown)}. Expected: {', '.join(ROLE_PROMPTS)}",
            param_hint="--agents",
        )

    template = enabled[0] if enabled else config.judge
    selected: list[AgentConfig] = []
    for role in roles:
        match = next((a for a in enabled if a.role == role), None)
        if match is None:
            match = AgentConfig(
                id=f"agent-{role}",
                name=f"{role.title()} Agent",
                role=role,
                model=template.model,
                provider=template.provider,
            )
        if match not in selected:
            selected.append(match)
    return selected


def _check_providers(config: AppConfig, participants: list[AgentConfig]) -> None:
    """Fail before any provider is built when a participant's API key is not set."""
    missing: dict[str, list[str]] = {}
    for participant in participants:
        if participant.provider in config.providers and participant.provider not in config.available_providers:
            missing.setdefault(participant.provider, []).append(participant.id)
    if missing:
        details = "; ".join(
            f"{name} (set {config.providers[name].api_key_env}, needed by {', '.join(ids)})"
            for name, ids in missing.items()
        )
        raise ConfigError(f"Missing API key for provider(s): {details}")


def _build_participants(
    config: AppConfig,
    agent_configs: list[AgentConfig],
    context_dir: Path | None,
    log: AgentLogger,
) -> tuple[list[RoleBasedAgent], JudgeAgent]:
    """Instantiate agents and judge. Raises ConfigError for missing keys or unknown providers."""
    _check_providers(config, [*agent_configs, config.judge])
    pool = ProviderPool(config.providers)
    summarization = config.debate.summarization
    agents = [
        RoleBasedAgent.from_config(
            agent_cfg,
            pool.get(agent_cfg.provider),
            config.config_dir,
            summarization=summarization,
            tool_registry=build_default_registry(context_dir),
            logger=log,
        )
        for agent_cfg in agent_configs
    ]
    judge = JudgeAgent.from_config(
        config.judge,
        pool.get(config.judge.provider),
        config.config_dir,
        summarization=summarization,
        logger=log,
    )
    return agents, judge


def _prompt_answers(groups: list[AgentClarifications]) -> dict[str, str]:
    """Ask the user every open question. Empty input means NA."""
    answers: dict[str, str] = {}
    console.print("\n[bold]Clarifying questions[/bold] (press Enter to answer NA)")
    for group in groups:
        open_items = [i for i in group.items if not i.answer.strip()]
        if not open_items:
            continue
        console.print(f"\n[cyan]{group.agent_name}[/cyan] ({group.role})")
        for item in open_items:
            answer = click.prompt(f"  {item.question}", default=NOT_APPLICABLE, show_default=False)
            answers[f"{group.agent_id}:{item.id}"] = answer.strip() or NOT_APPLICABLE
    return answers


def _round_timeout(config: DebateConfig) -> float | None:
    """Overall deadline: one timeout_per_round budget per round plus one for synthesis."""
    if config.timeout_per_round <= 0:
        return None
    return float(config.timeout_per_round * (config.rounds + 1))


async def _with_deadline(coro, debate_id: str, state_manager: StateManager, config: DebateConfig):
    try:
        return await asyncio.wait_for(coro, timeout=_round_timeout(config))
    except asyncio.TimeoutError:
        message = f"Debate timed out after {_round_timeout(config):.0f}s"
        state = state_manager.get_debate(debate_id)
        if state is not None and state.status not in TERMINAL_STATUSES:
            state_manager.fail_debate(debate_id, message)
        raise DialecticError(message) from None


def _print_result(result: DebateResult, state_manager: StateManager, output_dir: Path) -> None:
    for rnd in result.rounds:
        print_round_summary(rnd)
    if result.solution is not None:
        print_synthesis(result.solution)
    state = state_manager.get_debate(result.debate_id)
    saved = save_report(state, output_dir)
    console.print(f"\n[dim]Debate ID: {result.debate_id} | Duration: {result.duration_sec:.1f}s[/dim]")
    console.print(f"[dim]Saved to: {saved}[/dim]")


async def _drive_state_machine(
    orchestrator: StateMachineOrchestrator,
    execution: ExecutionResult,
    state_manager: StateManager,
    config: DebateConfig,
) -> DebateResult:
    """Answer suspensions interactively until the debate completes."""
    while execution.status == STATUS_SUSPENDED:
        payload = execution.suspend_payload
        answers = _prompt_answers(payload.questions)
        execution = await _with_deadline(
            orchestrator.resume(payload.debate_id, answers), payload.debate_id, state_manager, config
        )
    return execution.result


async def _run_debate(
    config: AppConfig,
    agent_configs: list[AgentConfig],
    problem: str,
    context_dir: Path | None,
    output_dir: Path,
    verbose: bool,
    context: str | None = None,
) -> None:
    log = make_agent_logger(verbose)
    agents, judge = _build_participants(config, agent_configs, context_dir, log)
    state_manager = StateManager(config.defaults.state_dir)
    debate = config.debate
    debate_id = new_debate_id()

    roles = ", ".join(f"{a.config.name} ({a.config.role})" for a in agents)
    console.print(
        f"\n[bold cyan]Dialectic[/bold cyan] - {len(agents)} agents, {debate.rounds} rounds "
        f"[{debate.orchestrator_type}]"
    )
    console.print(f"Agents: {roles}")
    console.print(f"Judge: {judge.config.name} ({judge.config.model})")
    console.print(f"Problem: [italic]{problem[:80]}{'...' if len(problem) > 80 else ''}[/italic]\n")

    clarifications: list[AgentClarifications] | None = None
    if debate.interactive_clarifications and debate.orchestrator_type == ORCHESTRATOR_CLASSIC:
        groups = await collect_clarifications(problem, agents, debate.clarifications_max_per_agent, log)
        if has_questions(groups):
            clarifications = apply_answers(groups, _prompt_answers(groups))
        else:
            console.print("[dim]No clarifying questions.[/dim]")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting debate...", total=None)

        def on_phase_start(round_number: int, phase: str, expected: int) -> None:
            progress.update(task, description=f"Round {round_number}: {phase} ({expected} tasks)")

        def on_round_complete(rnd: Round) -> None:
            progress.print(
                f"[green]OK[/green] Round {rnd.round_number} complete ({len(rnd.contributions)} contributions)"
            )

        def on_synthesis_start() -> None:
            progress.update(task, description="Running synthesis...")

        hooks = OrchestratorHooks(
            on_phase_start=on_phase_start,
            on_round_complete=on_round_complete,
            on_synthesis_start=on_synthesis_start,
        )
        orchestrator = create_orchestrator(agents, judge, state_manager, debate, hooks=hooks, logger_fn=log)
        outcome = await _with_deadline(
            orchestrator.run_debate(problem, context=context, clarifications=clarifications, debate_id=debate_id),
            debate_id,
            state_manager,
            debate,
        )

    if isinstance(outcome, ExecutionResult):
        result = await _drive_state_machine(orchestrator, outcome, state_manager, debate)
    else:
        result = outcome
    _print_result(result, state_manager, output_dir)


async def _resume_debate(
    config: AppConfig,
    debate_id: str,
    context_dir: Path | None,
    output_dir: Path,
    verbose: bool,
) -> None:
    log = make_agent_logger(verbose)
    state_manager = StateManager(config.defaults.state_dir)
    state = state_manager.get_debate(debate_id)
    if state is None:
        raise click.BadParameter(f"Debate {debate_id} not found", param_hint="DEBATE_ID")
    if state.status != STATUS_SUSPENDED:
        raise DebateStateError(f"Debate {debate_id} is {state.status}, not suspended")

    setup = state.setup
    if setup is not None:
        agent_configs = setup.agents
        config = dataclasses.replace(
            config,
            judge=setup.judge,
            debate=dataclasses.replace(
                config.debate,
                rounds=setup.rounds,
                termination_condition=setup.termination_condition,
                include_full_history=setup.include_full_history,
                interactive_clarifications=setup.interactive_clarifications,
            ),
        )
    else:
        logger.warning("Debate %s has no stored setup, using the current config", debate_id)
        agent_configs = _select_agent_configs(config, None)
    debate = dataclasses.replace(config.debate, orchestrator_type=ORCHESTRATOR_STATE_MACHINE)
    agents, judge = _build_participants(config, agent_configs, context_dir, log)
    orchestrator = create_orchestrator(agents, judge, state_manager, debate, logger_fn=log)

    answers = _prompt_answers(state.clarifications or [])
    execution = await _with_deadline(orchestrator.resume(debate_id, answers), debate_id, state_manager, debate)
    result = await _drive_state_machine(orchestrator, execution, state_manager, debate)
    _print_result(result, state_manager, output_dir)


@click.group()
def main() -> None:
    """Dialectic -- multi-agent debate engine for software design problems.

    \b
    Examples:
      dialectic debate "Design a rate limiter for a public API" --rounds 2
      dialectic debate --problem-file problem.md --agents architect,security
      dialectic debate "Design a cache" --context-file constraints.md
      dialectic debate "Design a cache" --clarify --orchestrator state-machine
      dialectic resume deb-20250101-120000-ab12
      dialectic feedback deb-20250101-120000-ab12 1
      dialectic show deb-20250101-120000-ab12
    """
    # Model responses may contain characters the Windows console code page cannot encode.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")


@main.command()
@click.argument("problem", required=False)
@click.option("--problem-file", type=click.Path(exists=True, dir_okay=False), help="Read the problem from a file")
@click.option("--context-file", type=click.Path(exists=True, dir_okay=False),
              help="Read additional context (constraints, existing design) from a file")
@click.option("--rounds", default=None, type=click.IntRange(min=1), help="Number of rounds (default: from config)")
@click.option("--agents", "roles", default=None, help="Comma-separated roles, e.g. architect,security")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="Settings YAML file")
@click.option("--context-dir", default=None, type=click.Path(exists=True, file_okay=False),
              help="Directory agents may read with file tools")
@click.option("--clarify/--no-clarify", default=None, help="Ask clarifying questions before round one")
@click.option("--orchestrator", "orchestrator_type", default=None,
              type=click.Choice([ORCHESTRATOR_CLASSIC, ORCHESTRATOR_STATE_MACHINE]),
              help="Orchestrator implementation (default: from config)")
@click.option("--output", "output_path", default=None, help="Report directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG logging and verbose agent output")
def debate(
    problem: str | None,
    problem_file: str | None,
    context_file: str | None,
    rounds: int | None,
    roles: str | None,
    config_path: str | None,
    context_dir: str | None,
    clarify: bool | None,
    orchestrator_type: str | None,
    output_path: str | None,
    verbose: bool,
) -> None:
    """Run a debate on PROBLEM and save the report."""
    _setup_logging(verbose)

    if problem_file and problem:
        raise click.UsageError("Provide either a PROBLEM argument or --problem-file, not both.")
    if problem_file:
        problem_text = Path(problem_file).read_text(encoding="utf-8").strip()
    else:
        problem_text = (problem or "").strip()
    if not problem_text:
        raise click.UsageError("Provide a PROBLEM argument or --problem-file.")
    context_text = Path(context_file).read_text(encoding="utf-8").strip() if context_file else ""

    config = _load_app_config(config_path)
    overrides: dict = {}
    if rounds is not None:
        overrides["rounds"] = rounds
    if clarify is not None:
        overrides["interactive_clarifications"] = clarify
    if orchestrator_type is not None:
        overrides["orchestrator_type"] = orchestrator_type
    if overrides:
        config.debate = dataclasses.replace(config.debate, **overrides)

    agent_configs = _select_agent_configs(config, roles)
    if not agent_configs:
        raise click.UsageError("No enabled agents. Enable agents in the config or pass --agents.")

    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    try:
        asyncio.run(
            _run_debate(
                config,
                agent_configs,
                problem_text,
                Path(context_dir) if context_dir else None,
                output_dir,
                verbose,
                context=context_text or None,
            )
        )
    except DialecticError as exc:
        _fail(exc)


@main.command()
@click.argument("debate_id")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="Settings YAML file")
@click.option("--context-dir", default=None, type=click.Path(exists=True, file_okay=False),
              help="Directory agents may read with file tools")
@click.option("--output", "output_path", default=None, help="Report directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG logging and verbose agent output")
def resume(
    debate_id: str,
    config_path: str | None,
    context_dir: str | None,
    output_path: str | None,
    verbose: bool,
) -> None:
    """Answer pending clarifications and resume a suspended debate."""
    _setup_logging(verbose)
    config = _load_app_config(config_path)
    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    try:
        asyncio.run(
            _resume_debate(config, debate_id, Path(context_dir) if context_dir else None, output_dir, verbose)
        )
    except DialecticError as exc:
        _fail(exc)


@main.command()
@click.argument("debate_id")
@click.argument("score", type=int)
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="Settings YAML file")
def feedback(debate_id: str, score: int, config_path: str | None) -> None:
    """Store user feedback (an integer score) on a debate."""
    config = _load_app_config(config_path)
    try:
        StateManager(config.defaults.state_dir).update_user_feedback(debate_id, score)
    except DialecticError as exc:
        _fail(exc)
    console.print(f"Feedback {score} saved for {debate_id}")


@main.command()
@click.argument("debate_id")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="Settings YAML file")
def show(debate_id: str, config_path: str | None) -> None:
    """Print a persisted debate."""
    config = _load_app_config(config_path)
    state = StateManager(config.defaults.state_dir).get_debate(debate_id)
    if state is None:
        console.print(f"[bold red]Error:[/bold red] Debate {debate_id} not found")
        sys.exit(EXIT_GENERAL_ERROR)
    print_debate(state, console)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
FSP Simulator CLI

Usage:
    fspsim run --config FILE [--rpc-url URL] [--accounts FILE] [--duration SECONDS]
    fspsim local [--voters N] [--duration SECONDS] [--round-duration S] [--rounds-per-epoch N]
    fspsim clock --settings FILE [--at TIMESTAMP]
"""

import asyncio
import json
import time
from typing import Optional

import click

from .authority import JsonRpcAuthority, LocalAuthority, build_initial_policy
from .config import SimulationConfig
from .constants import (
    FIRST_REWARD_EPOCH_START_VOTING_ROUND_ID,
    NEW_SIGNING_POLICY_INITIALIZATION_START_SECONDS,
    REWARD_EPOCH_DURATION_IN_VOTING_EPOCHS,
    VOTER_REGISTRATION_MIN_DURATION_SECONDS,
    VOTING_EPOCH_DURATION_SEC,
)
from .exceptions import FSPException
from .logger import configure_logging
from .protocol.epoch import EpochClock
from .protocol.participants import generate_participants, load_participants
from .protocol.signing_policy import SigningPolicy
from .scheduler import SystemClock
from .simulation import Simulation


def _run_simulation(simulation: Simulation, duration: Optional[float]):
    try:
        asyncio.run(simulation.run(duration))
    except KeyboardInterrupt:
        click.echo("Interrupted")
    for name, error in simulation.failures:
        click.echo(click.style(f"{name} halted: {error}", fg="red"))


async def _fetch_epoch_settings(config: SimulationConfig) -> dict:
    authority = JsonRpcAuthority(config.authority.rpc_url, timeout=config.authority.request_timeout)
    try:
        return await authority.epoch_settings()
    finally:
        await authority.close()


def local_epoch_clock(now: float, round_duration: int, rounds_per_epoch: int) -> EpochClock:
    """Timing for a local run that starts one second into reward epoch 0."""
    reward_epoch_seconds = round_duration * rounds_per_epoch
    init_offset = min(NEW_SIGNING_POLICY_INITIALIZATION_START_SECONDS, reward_epoch_seconds * 9 // 20)
    return EpochClock(
        first_voting_round_start_ts=int(now) - 1 - FIRST_REWARD_EPOCH_START_VOTING_ROUND_ID * round_duration,
        voting_epoch_duration_seconds=round_duration,
        first_reward_epoch_start_voting_round_id=FIRST_REWARD_EPOCH_START_VOTING_ROUND_ID,
        reward_epoch_duration_in_voting_epochs=rounds_per_epoch,
        new_signing_policy_initialization_start_seconds=init_offset,
        voter_registration_min_duration_seconds=min(VOTER_REGISTRATION_MIN_DURATION_SECONDS, init_offset // 3),
    )


@click.group()
@click.version_option(version="1.0.0", prog_name="fspsim")
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level: Optional[str]):
    """FSP Simulator Command Line Interface

    Drives registered voters through signing policy handoffs and voting
    rounds against a protocol authority.
    """
    if log_level:
        configure_logging(log_level=log_level.upper())


@cli.command("run")
@click.option("--config", "-c", "config_path", default="fspsim.toml", help="Simulation config (TOML)")
@click.option("--rpc-url", "-u", default=None, help="Authority JSON-RPC URL")
@click.option("--accounts", "-a", type=click.Path(exists=True), default=None, help="Accounts JSON file")
@click.option("--duration", "-d", type=float, default=None, help="Stop after this many seconds")
def run_cmd(config_path: str, rpc_url: Optional[str], accounts: Optional[str], duration: Optional[float]):
    """Run against a remote authority.

    Examples:

        fspsim run --config sim/fspsim.toml

        fspsim run -c fspsim.toml --rpc-url http://127.0.0.1:9650/ext/fsp --duration 600
    """
    try:
        config = SimulationConfig.from_file(config_path)
        if rpc_url:
            config.authority.rpc_url = rpc_url
        if accounts:
            config.files.accounts = accounts
        config.validate()

        if not config.files.accounts:
            raise click.ClickException("No accounts file configured")
        participants = load_participants(config.files.accounts)

        if config.files.epoch_settings:
            epochs = EpochClock.from_file(config.files.epoch_settings)
        else:
            epochs = EpochClock.from_dict(asyncio.run(_fetch_epoch_settings(config)))
        authority = JsonRpcAuthority(config.authority.rpc_url, timeout=config.authority.request_timeout)

        initial_policy = None
        if config.files.initial_signing_policy:
            with open(config.files.initial_signing_policy) as f:
                initial_policy = SigningPolicy.from_dict(json.load(f))
    except FSPException as e:
        raise click.ClickException(str(e))

    click.echo(f"Authority: {config.authority.rpc_url}")
    click.echo(f"Participants: {len(participants)}")

    simulation = Simulation(
        authority, epochs, participants,
        config=config, clock=SystemClock(), initial_policy=initial_policy,
    )
    _run_simulation(simulation, duration)


@cli.command("local")
@click.option("--voters", "-n", type=int, default=4, help="Number of generated voters")
@click.option("--duration", "-d", type=float, default=None, help="Stop after this many seconds")
@click.option("--round-duration", type=int, default=VOTING_EPOCH_DURATION_SEC, help="Voting round length (s)")
@click.option("--rounds-per-epoch", type=int, default=REWARD_EPOCH_DURATION_IN_VOTING_EPOCHS,
              help="Voting rounds per reward epoch")
@click.option("--config", "-c", "config_path", default=None, help="Optional simulation config (TOML)")
@click.option("--insecure-random", is_flag=True, help="Report unsecure randomness (halts policy handoff)")
def local_cmd(voters: int, duration: Optional[float], round_duration: int, rounds_per_epoch: int,
              config_path: Optional[str], insecure_random: bool):
    """Run against an in-process authority with generated voters.

    Examples:

        fspsim local --voters 4 --duration 300

        fspsim local --round-duration 10 --rounds-per-epoch 6
    """
    if voters < 1:
        raise click.ClickException("At least one voter is required")

    try:
        config = SimulationConfig.from_file(config_path) if config_path else SimulationConfig()
        config.validate()

        clock = SystemClock()
        epochs = local_epoch_clock(clock.now(), round_duration, rounds_per_epoch)
        participants = generate_participants(voters)
        initial_policy = build_initial_policy(
            participants,
            reward_epoch_id=0,
            start_voting_round_id=epochs.reward_epoch_start_round(0),
        )
        authority = LocalAuthority(clock, epochs, initial_policy, secure_random=not insecure_random)
    except FSPException as e:
        raise click.ClickException(str(e))

    click.echo(f"Local authority with {voters} voters")
    for participant in participants:
        click.echo(f"  {participant.identity.address} (signing policy {participant.voter_address})")

    simulation = Simulation(
        authority, epochs, participants,
        config=config, clock=clock, initial_policy=initial_policy,
    )
    _run_simulation(simulation, duration)


@cli.command("clock")
@click.option("--settings", "-s", type=click.Path(exists=True), required=True, help="epoch-settings.json")
@click.option("--at", "timestamp", type=float, default=None, help="Unix timestamp (default: now)")
def clock_cmd(settings: str, timestamp: Optional[float]):
    """Show the voting round and reward epoch at a timestamp.

    Examples:

        fspsim clock --settings sim/epoch-settings.json

        fspsim clock -s epoch-settings.json --at 1700000000
    """
    try:
        epochs = EpochClock.from_file(settings)
    except FSPException as e:
        raise click.ClickException(str(e))

    if timestamp is None:
        timestamp = time.time()

    try:
        voting_round = epochs.voting_round_at(timestamp)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"Timestamp:            {timestamp:.0f}")
    click.echo(f"Voting round:         {voting_round}")
    click.echo(f"  started at:         {epochs.round_start(voting_round)}")
    click.echo(f"  next round at:      {epochs.next_round_start(timestamp)}")

    try:
        reward_epoch = epochs.reward_epoch_at(timestamp)
    except ValueError:
        click.echo(click.style("Before the first reward epoch", fg="yellow"))
        return

    click.echo(f"Reward epoch:         {reward_epoch}")
    click.echo(f"  started at:         {epochs.reward_epoch_start(reward_epoch)}")
    click.echo(f"  next epoch at:      {epochs.next_reward_epoch_start(timestamp)}")
    click.echo(f"  next policy from:   {epochs.signing_policy_protocol_start(reward_epoch)}")


if __name__ == "__main__":
    cli()

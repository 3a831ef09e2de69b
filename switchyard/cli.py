"""
Switchyard CLI.

Usage:
    switchyard mcp list                        # MCP servers from every source
    switchyard mcp add [-e K=V] NAME -- CMD [ARGS...]  # Add a command server
    switchyard mcp add NAME --url URL [--sse]  # Add a network server
    switchyard mcp remove NAME                 # Remove from the primary source
    switchyard mcp toggle NAME                 # Enable <-> disable
    switchyard mcp templates                   # Built-in server templates
    switchyard mcp install TEMPLATE [-e K=V]   # Add a server from a template
    switchyard mcp status [NAME]               # Is the process running
    switchyard skills list                     # Skills and where they're synced
    switchyard skills sync SKILL TARGET        # Link a skill into a tool
    switchyard skills unsync SKILL TARGET      # Remove that link
    switchyard skills status SKILL             # Sync state per tool
    switchyard skills install PATH|URL         # Folder, .zip or git URL
    switchyard skills update SKILL             # git pull
    switchyard skills delete SKILL             # Remove a skill
    switchyard model current                   # Model Claude Code uses
    switchyard model list [--platform P]       # Built-in models
    switchyard model switch MODEL [--platform P] [--api-key KEY]
    switchyard config show|get KEY|set KEY VALUE
    switchyard serve                           # Run the HTTP API
    switchyard watch                           # Rescan whenever a source changes
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from switchyard.config import (
    CONFIG_KEYS,
    ENV_PREFIX,
    Settings,
    _load_yaml_config,
    _resolve_config_dir,
    get_config_path,
    save_yaml_config,
)
from switchyard.core.engine import Engine
from switchyard.core.model_switch import ModelSwitcher
from switchyard.core.templates import find_template, templates_by_category
from switchyard.lib.logger import setup_logging
from switchyard.lib.typed_errors import OperationResult
from switchyard.models.extension import ExtensionDefinition, ExtensionKind
from switchyard.models.preset import PRESETS, ModelPlatform, ModelPreset, find_preset


# --- Helpers ---


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}")
        sys.exit(1)


def _run(fn: Callable[[Engine], Awaitable[Any]], settings: Optional[Settings] = None) -> Any:
    """Start an engine, run one operation on it, shut it down."""
    settings = settings or _load_settings()
    setup_logging(level=os.environ.get(f"{ENV_PREFIX}LOG_LEVEL", "WARNING"))

    async def runner() -> Any:
        engine = Engine(settings)
        await engine.start()
        try:
            return await fn(engine)
        finally:
            await engine.stop()

    return asyncio.run(runner())


def _report(result: OperationResult) -> None:
    if result.success:
        print(result.detail or "Done")
        return
    print(f"Error ({result.title}): {result.detail}")
    sys.exit(1)


def _parse_env(pairs: Optional[list[str]]) -> dict[str, str]:
    env: dict[str, str] = {}
    for pair in pairs or []:
        if "=" not in pair:
            print(f"Error: expected KEY=VALUE, got '{pair}'")
            sys.exit(1)
        key, value = pair.split("=", 1)
        env[key.strip()] = value
    return env


def _is_git_url(value: str) -> bool:
    return value.startswith(("http://", "https://", "git@", "ssh://", "git://")) or value.endswith(".git")


# --- MCP commands ---


def cmd_mcp_list(args: argparse.Namespace) -> None:
    async def op(engine: Engine) -> None:
        if not engine.definitions:
            print("No MCP servers configured.")
            return
        width = max(len(d.id) for d in engine.definitions)
        for d in engine.definitions:
            mark = "on " if d.enabled else "off"
            print(f"  [{mark}] {d.id:<{width}}  {d.kind.display_name:<7}  {d.origin:<18}  {d.display_command}")

    _run(op)


def cmd_mcp_add(args: argparse.Namespace) -> None:
    if args.url:
        definition = ExtensionDefinition(
            id=args.name,
            kind=ExtensionKind.SSE if args.sse else ExtensionKind.HTTP,
            endpoint=args.url,
            headers=_parse_env(args.header) or None,
        )
    elif args.cmd:
        definition = ExtensionDefinition(
            id=args.name,
            kind=ExtensionKind.COMMAND,
            executable=args.cmd[0],
            arguments=args.cmd[1:],
            environment=_parse_env(args.env) or None,
        )
    else:
        print("Error: give a command after '--', or --url")
        sys.exit(1)

    _report(_run(lambda engine: engine.add_definition(definition)))


def cmd_mcp_remove(args: argparse.Namespace) -> None:
    _report(_run(lambda engine: engine.remove_definition(args.name)))


def cmd_mcp_toggle(args: argparse.Namespace) -> None:
    _report(_run(lambda engine: engine.toggle_definition(args.name)))


def cmd_mcp_templates(args: argparse.Namespace) -> None:
    for category, templates in templates_by_category():
        print(f"\n{category}")
        for t in templates:
            needs = f"  (needs {', '.join(t.required_env)})" if t.required_env else ""
            print(f"  {t.id:<20} {t.description}{needs}")


def cmd_mcp_install(args: argparse.Namespace) -> None:
    if find_template(args.template) is None:
        print(f"Unknown template: {args.template}")
        sys.exit(1)
    env = _parse_env(args.env)
    _report(_run(lambda engine: engine.add_from_template(args.template, env, args.name)))


def cmd_mcp_status(args: argparse.Namespace) -> None:
    async def op(engine: Engine) -> None:
        if args.name:
            state = await engine.definition_status(args.name)
            if state is None:
                print(f"No MCP server named '{args.name}'")
                sys.exit(1)
            print(f"{args.name}: {state.value}")
            return
        for name, state in (await engine.refresh_liveness()).items():
            print(f"  {name}: {state.value}")

    _run(op)


# --- Skills commands ---


def cmd_skills_list(args: argparse.Namespace) -> None:
    async def op(engine: Engine) -> None:
        if not engine.bundles:
            print(f"No skills in {engine.bundle_root}")
            return
        for bundle in engine.bundles:
            statuses = await engine.bundle_status(bundle.id)
            synced = [t for t, s in statuses.items() if s.value == "synced"]
            origin = bundle.origin_kind.value + (f" {bundle.origin_location}" if bundle.origin_location else "")
            print(f"  {bundle.display_name} ({bundle.id})  [{origin}]  synced: {', '.join(synced)}")
            if bundle.description:
                print(f"      {bundle.description}")

    _run(op)


def cmd_skills_sync(args: argparse.Namespace) -> None:
    _report(_run(lambda engine: engine.sync_bundle(args.skill, args.target)))


def cmd_skills_unsync(args: argparse.Namespace) -> None:
    _report(_run(lambda engine: engine.unsync_bundle(args.skill, args.target)))


def cmd_skills_status(args: argparse.Namespace) -> None:
    async def op(engine: Engine) -> None:
        if engine.get_bundle(args.skill) is None:
            print(f"No skill named '{args.skill}'")
            sys.exit(1)
        for target_id, state in (await engine.bundle_status(args.skill)).items():
            print(f"  {target_id}: {state.value}")

    _run(op)


def cmd_skills_install(args: argparse.Namespace) -> None:
    source = args.source
    if _is_git_url(source) and not Path(source).exists():
        _report(_run(lambda engine: engine.install_git(source, args.name)))
    else:
        _report(_run(lambda engine: engine.install_local(Path(source), args.name)))


def cmd_skills_update(args: argparse.Namespace) -> None:
    _report(_run(lambda engine: engine.update_bundle(args.skill)))


def cmd_skills_delete(args: argparse.Namespace) -> None:
    _report(_run(lambda engine: engine.delete_bundle(args.skill)))


# --- Model commands ---


def cmd_model_current(args: argparse.Namespace) -> None:
    settings = _load_settings()
    state = ModelSwitcher(settings.model_settings_file).current()
    print(f"Model:    {state.display_name}" + (f" ({state.model_id})" if state.model_id else ""))
    print(f"Platform: {state.platform.label}")
    if state.base_url:
        print(f"Base URL: {state.base_url}")
    print(f"API key:  {'configured' if state.has_token else 'not set'}")


def cmd_model_list(args: argparse.Namespace) -> None:
    platform = ModelPlatform(args.platform) if args.platform else None
    for preset in PRESETS:
        if platform is None or preset.platform is platform:
            print(f"  {preset.model_id:<28} {preset.display_name:<22} {preset.platform.label}")


def cmd_model_switch(args: argparse.Namespace) -> None:
    if args.platform:
        platform = ModelPlatform(args.platform)
        preset = find_preset(args.model, platform)
        if preset is None or preset.platform is not platform:
            preset = ModelPreset(
                model_id=args.model, display_name=args.model, platform=platform, is_custom=True
            )
        _report(_run(lambda engine: engine.switch_model(preset, args.api_key)))
    else:
        _report(_run(lambda engine: engine.quick_switch_model(args.model, args.api_key)))


# --- Config commands ---


def cmd_config(args: argparse.Namespace) -> None:
    """Config management: show, set, get."""
    action = getattr(args, "action", None)

    if action == "show":
        _config_show()
    elif action == "set":
        _config_set(args.key, args.value)
    elif action == "get":
        _config_get(args.key)
    else:
        print("Usage: switchyard config {show|set|get}")


def _config_show() -> None:
    """Show effective config, noting where it came from."""
    config_dir = _resolve_config_dir({})
    config = _load_yaml_config(config_dir)
    settings = _load_settings()

    print(f"\nConfig: {get_config_path(config_dir)}")
    print("-" * 40)
    for key in sorted(CONFIG_KEYS):
        env_name = f"{ENV_PREFIX}{key.upper()}"
        if env_name in os.environ:
            origin = f" (env: {env_name})"
        elif key in config:
            origin = " (config.yaml)"
        else:
            origin = ""
        print(f"  {key}: {getattr(settings, key)}{origin}")

    print("\n  sources:")
    for source in settings.sources:
        mark = "*" if source.tag == settings.primary_source else " "
        print(f"   {mark} {source.tag:<20} {settings.expand(source.path)}")
    print("\n  targets:")
    for target in settings.targets:
        print(f"     {target.id:<20} {settings.expand(target.skills_dir)}")


def _config_set(key: str, value: str) -> None:
    """Set a config value."""
    if key not in CONFIG_KEYS:
        print(f"Unknown key: {key}")
        print(f"Valid keys: {', '.join(sorted(CONFIG_KEYS))}")
        sys.exit(1)

    config_dir = _resolve_config_dir({})
    config = _load_yaml_config(config_dir)

    # Type conversion
    converted: Any = value
    if key == "port":
        try:
            converted = int(value)
        except ValueError:
            print(f"Error: port must be an integer, got '{value}'")
            sys.exit(1)
    elif key == "watch_debounce":
        try:
            converted = float(value)
        except ValueError:
            print(f"Error: watch_debounce must be a number, got '{value}'")
            sys.exit(1)

    config[key] = converted
    save_yaml_config(config_dir, config)
    print(f"Set {key} = {converted}")


def _config_get(key: str) -> None:
    """Get a single config value."""
    env_val = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
    if env_val:
        print(env_val)
        return

    config = _load_yaml_config(_resolve_config_dir({}))
    if key in config:
        print(config[key])
    else:
        print(f"Key '{key}' not set in config.yaml")
        sys.exit(1)


# --- Long-running commands ---


def cmd_serve(args: argparse.Namespace) -> None:
    from switchyard.server import main as serve_main

    settings = _load_settings()
    if args.port:
        settings.port = args.port
    if args.host:
        settings.host = args.host
    serve_main(settings)


def cmd_watch(args: argparse.Namespace) -> None:
    settings = _load_settings()
    setup_logging(level=settings.log_level, format_string=settings.log_format)

    async def watch() -> None:
        engine = Engine(settings)
        await engine.start(watch=True)
        print(f"Watching {len(engine.registry)} sources; Ctrl-C to stop")
        try:
            await asyncio.Event().wait()
        finally:
            await engine.stop()

    try:
        asyncio.run(watch())
    except KeyboardInterrupt:
        pass


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="switchyard",
        description="Switchyard - model, MCP server and skill management for Claude Code",
    )
    subparsers = parser.add_subparsers(dest="command")

    # mcp subcommand
    mcp_parser = subparsers.add_parser("mcp", help="MCP server management")
    mcp_sub = mcp_parser.add_subparsers(dest="action")
    mcp_sub.add_parser("list", help="List MCP servers")
    add_parser = mcp_sub.add_parser("add", help="Add an MCP server")
    add_parser.add_argument("name", help="Server name")
    add_parser.add_argument("--url", help="Endpoint for a network server")
    add_parser.add_argument("--sse", action="store_true", help="Endpoint speaks SSE")
    add_parser.add_argument("--env", "-e", action="append", help="KEY=VALUE (repeatable)")
    add_parser.add_argument("--header", action="append", help="KEY=VALUE (repeatable)")
    add_parser.add_argument("cmd", nargs="*", help="Command and arguments after --")
    for action in ("remove", "toggle"):
        p = mcp_sub.add_parser(action, help=f"{action.capitalize()} an MCP server")
        p.add_argument("name", help="Server name")
    mcp_sub.add_parser("templates", help="List server templates")
    install_parser = mcp_sub.add_parser("install", help="Add a server from a template")
    install_parser.add_argument("template", help="Template id")
    install_parser.add_argument("--name", help="Server name (default: template id)")
    install_parser.add_argument("--env", "-e", action="append", help="KEY=VALUE (repeatable)")
    status_parser = mcp_sub.add_parser("status", help="Process status")
    status_parser.add_argument("name", nargs="?", help="Server name (default: all)")

    # skills subcommand
    skills_parser = subparsers.add_parser("skills", help="Skill management")
    skills_sub = skills_parser.add_subparsers(dest="action")
    skills_sub.add_parser("list", help="List skills")
    for action, help_text in (("sync", "Link a skill into a tool"), ("unsync", "Remove a skill's link from a tool")):
        p = skills_sub.add_parser(action, help=help_text)
        p.add_argument("skill", help="Skill id (folder name)")
        p.add_argument("target", help="Target tool id")
    for action, help_text in (
        ("status", "Show sync status"),
        ("update", "git pull a skill"),
        ("delete", "Delete a skill"),
    ):
        p = skills_sub.add_parser(action, help=help_text)
        p.add_argument("skill", help="Skill id (folder name)")
    skill_install = skills_sub.add_parser("install", help="Install a skill")
    skill_install.add_argument("source", help="Folder, .zip file or git URL")
    skill_install.add_argument("--name", help="Folder name to install as")

    # model subcommand
    model_parser = subparsers.add_parser("model", help="Model switching")
    model_sub = model_parser.add_subparsers(dest="action")
    model_sub.add_parser("current", help="Show the current model")
    platforms = [p.value for p in ModelPlatform]
    list_parser = model_sub.add_parser("list", help="List built-in models")
    list_parser.add_argument("--platform", choices=platforms)
    switch_parser = model_sub.add_parser("switch", help="Switch model")
    switch_parser.add_argument("model", help="Model id")
    switch_parser.add_argument("--platform", choices=platforms)
    switch_parser.add_argument("--api-key", help="API key (default: reuse the current one)")

    # config subcommand
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_sub = config_parser.add_subparsers(dest="action")
    config_sub.add_parser("show", help="Show current config")
    config_set_parser = config_sub.add_parser("set", help="Set a config value")
    config_set_parser.add_argument("key", help="Config key")
    config_set_parser.add_argument("value", help="Config value")
    config_get_parser = config_sub.add_parser("get", help="Get a config value")
    config_get_parser.add_argument("key", help="Config key")

    # serve / watch
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")
    subparsers.add_parser("watch", help="Watch sources and rescan on change")

    args = parser.parse_args(argv)

    if args.command == "mcp":
        if getattr(args, "cmd", None) and args.cmd[0] == "--":
            args.cmd = args.cmd[1:]
        handlers = {
            "list": cmd_mcp_list,
            "add": cmd_mcp_add,
            "remove": cmd_mcp_remove,
            "toggle": cmd_mcp_toggle,
            "templates": cmd_mcp_templates,
            "install": cmd_mcp_install,
            "status": cmd_mcp_status,
        }
        handler = handlers.get(args.action)
        handler(args) if handler else mcp_parser.print_help()
    elif args.command == "skills":
        handlers = {
            "list": cmd_skills_list,
            "sync": cmd_skills_sync,
            "unsync": cmd_skills_unsync,
            "status": cmd_skills_status,
            "install": cmd_skills_install,
            "update": cmd_skills_update,
            "delete": cmd_skills_delete,
        }
        handler = handlers.get(args.action)
        handler(args) if handler else skills_parser.print_help()
    elif args.command == "model":
        if args.action == "current":
            cmd_model_current(args)
        elif args.action == "list":
            cmd_model_list(args)
        elif args.action == "switch":
            cmd_model_switch(args)
        else:
            model_parser.print_help()
    elif args.command == "config":
        cmd_config(args)
    elif args.command == "serve":
        cmd_serve(args)
    elif args.command == "watch":
        cmd_watch(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()

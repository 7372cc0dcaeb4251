# kvsettings_app/cli.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import json

import click
from flask import current_app
from flask.cli import AppGroup

from .exceptions import SettingsError
from .services.settings import get_settings

settings_cli = AppGroup("settings", help="Gerencia os settings (com suporte a grupos).")


def _manager(group):
    manager = get_settings()
    return manager.group(group) if group else manager


def _group_info(group, fmt):
    return fmt.format(group=group) if group and group != "default" else ""


def _display(value) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


@settings_cli.command("list")
@click.option("--group", default=None, help="Grupo a listar (padrão: default).")
def list_cmd(group):
    """Lista todos os settings de um grupo."""
    data = _manager(group).all()
    if not data:
        info = _group_info(group, " in group '{group}'")
        click.echo(f"No settings found{info}.")
        return

    click.echo(f"Settings (Group: {group or 'default'}):")
    width = max(len(k) for k in data)
    click.echo(f"{'Key'.ljust(width)}  {'Type'.ljust(5)}  Value")
    for key, value in data.items():
        click.echo(f"{key.ljust(width)}  {type(value).__name__.ljust(5)}  {_display(value)}")


@settings_cli.command("get")
@click.argument("key", required=False)
@click.option("--group", default=None)
def get_cmd(key, group):
    """Mostra o valor de um setting."""
    key = key or click.prompt("Enter setting key")
    manager = _manager(group)
    if not manager.has(key):
        info = _group_info(group, " in group '{group}'")
        click.echo(f"Setting '{key}' not found{info}.", err=True)
        return
    click.echo(_display(manager.get(key)))


@settings_cli.command("set")
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--group", default=None)
@click.pass_context
def set_cmd(ctx, key, value, group):
    """Grava um setting (cria ou atualiza)."""
    key = key or click.prompt("Enter setting key")
    if value is None:
        value = click.prompt("Enter setting value", default="", show_default=False)

    try:
        _manager(group).set(key, value)
    except SettingsError as exc:
        current_app.logger.warning("settings set falhou: %s", exc)
        click.echo(f"Failed to set setting: {exc}", err=True)
        ctx.exit(1)
    info = _group_info(group, " in group '{group}'")
    click.echo(f"Setting '{key}' has been set{info}.")


@settings_cli.command("delete")
@click.argument("key", required=False)
@click.option("--group", default=None)
@click.option("--yes", is_flag=True, help="Não pede confirmação.")
@click.pass_context
def delete_cmd(ctx, key, group, yes):
    """Remove um setting do grupo."""
    key = key or click.prompt("Enter setting key to delete")
    manager = _manager(group)
    info = _group_info(group, " from group '{group}'")

    if not manager.has(key):
        click.echo(f"Setting '{key}' does not exist{info}.")
        return

    if not yes and not click.confirm(f"Are you sure you want to delete setting '{key}'{info}?", default=True):
        click.echo("Operation cancelled.")
        return

    if manager.forget(key):
        click.echo(f"Setting '{key}' has been deleted{info}.")
        return
    click.echo("Failed to delete setting.", err=True)
    ctx.exit(1)


@settings_cli.command("clear-cache")
@click.option("--group", default=None, help="Limpa só este grupo; sem ele, limpa todos.")
@click.option("--yes", is_flag=True)
@click.pass_context
def clear_cache_cmd(ctx, group, yes):
    """Limpa o cache de settings (um grupo ou todos)."""
    message = f"clear the settings cache for group '{group}'" if group else "clear all settings cache"
    if not yes and not click.confirm(f"Are you sure you want to {message}?", default=True):
        click.echo("Operation cancelled.")
        return

    manager = get_settings()
    ok = manager.group(group).flush_cache() if group else manager.flush_all_cache()
    if ok:
        click.echo(f"Settings cache for group '{group}' has been cleared." if group
                   else "All settings cache has been cleared.")
        return
    click.echo("Failed to clear settings cache.", err=True)
    ctx.exit(1)


@settings_cli.command("groups")
def groups_cmd():
    """Lista os grupos existentes."""
    groups = sorted(get_settings().get_all_groups())
    if not groups:
        click.echo("No settings groups found.")
        return
    for name in groups:
        click.echo(name)


def register_settings_cli(app):
    app.cli.add_command(settings_cli)

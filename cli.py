# Simple CLI for the trade sync engine
import asyncio
import click
from app.main import main as run_app


@click.group()
def cli():
    """Trade Sync CLI"""
    pass


@cli.command()
def run():
    """Run the sync engine headless (no HTTP surface)"""
    click.echo("Starting trade sync...")
    asyncio.run(run_app())


@cli.command()
def api():
    """Run the API server with the sync engine in its lifespan"""
    click.echo("Starting trade sync API server...")
    from api.main import run as run_api
    run_api()


if __name__ == "__main__":
    cli()

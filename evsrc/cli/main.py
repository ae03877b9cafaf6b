"""Main CLI application using Cyclopts."""

import cyclopts

from evsrc.cli.commands import controller, sources

app = cyclopts.App(
    name="evsrc",
    help="Event source controller - run receive adapters and register their webhooks",
)

app.command(controller.controller, name="controller")
app.command(sources.apply, name="apply")
app.command(sources.get, name="get")
app.command(sources.describe, name="describe")
app.command(sources.delete, name="delete")


def main() -> None:
    app()


if __name__ == "__main__":
    main()

"""Built-in CLI sub-commands for clisso.

* :mod:`~clisso.commands.login` -- log in and print the tokens.
* :mod:`~clisso.commands.serve` -- run the login broker.
* :mod:`~clisso.commands.profile` -- manage saved login profiles.

``profile`` exports a :class:`typer.Typer` sub-application; ``login`` and
``serve`` export plain callbacks registered directly on the root app.
"""

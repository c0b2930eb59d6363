"""Allow ``python -m lousy_agents``."""

from lousy_agents.cli import app

app(prog_name="lousy-agents")

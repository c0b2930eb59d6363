"""lousy-agents: scaffold and maintain GitHub Copilot configuration in a repository."""

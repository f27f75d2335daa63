"""Weekly standup bot: Jira tickets summarised by Claude, delivered in Slack."""

__version__ = "0.1.0"

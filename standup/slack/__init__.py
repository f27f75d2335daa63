"""Slack client, Block Kit views, interaction parsing and the setup wizard."""

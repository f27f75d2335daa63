"""Atlassian OAuth and Jira Cloud REST clients."""

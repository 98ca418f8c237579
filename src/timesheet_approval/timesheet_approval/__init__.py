"""Timesheet approval package.

Time entries move through draft, submission, confirmation, rejection,
correction and deletion. The workflow engine is pure; services wire it to
MySQL repositories, the history recorder and the change notifier, and a thin
Flask controller exposes it as JSON.
"""

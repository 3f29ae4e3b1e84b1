"""Mailgun inbound webhook: route and orchestration service."""

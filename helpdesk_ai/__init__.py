"""Helpdesk ticketing backend with LLM-assisted support tooling."""

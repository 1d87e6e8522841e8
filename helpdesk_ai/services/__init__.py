"""Clients and services behind the HTTP routers."""

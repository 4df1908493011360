"""Layered configuration: YAML file, .env file and environment variables."""
